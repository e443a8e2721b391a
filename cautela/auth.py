# cautela/auth.py
from functools import wraps

from flask import Blueprint, current_app, g, jsonify, session

from . import db
from .forms import json_body, text
from .models import User

bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def load_current_user():
    """Coloca em g.user o usuário da sessão (ou None). Vale só para este request."""
    user_id = session.get("user_id")
    user = db.session.get(User, user_id) if user_id else None

    if user is not None and not user.ativo:
        # desativado depois do login: derruba a sessão
        session.clear()
        user = None

    g.user = user


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if g.get("user") is None:
            return jsonify({"ok": False, "error": "Autenticação necessária."}), 401
        return view(*args, **kwargs)
    return wrapped


def admin_required(view):
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if not g.user.is_admin:
            return jsonify({"ok": False, "error": "Acesso restrito a administradores."}), 403
        return view(*args, **kwargs)
    return wrapped


@bp.post("/login")
def login():
    data = json_body()
    if data is None:
        return jsonify({"ok": False, "error": "Corpo da requisição deve ser um objeto JSON."}), 400
    username = text(data, "username")
    password = data.get("password")
    if not isinstance(password, str):
        password = ""

    if not username or not password:
        return jsonify({"ok": False, "error": "Informe usuário e senha."}), 400

    user = User.query.filter(User.username == username).first()
    if user is None or not user.check_password(password):
        current_app.logger.warning("login recusado para '%s'", username)
        return jsonify({"ok": False, "error": "Usuário ou senha inválidos."}), 401

    if not user.ativo:
        current_app.logger.warning("login de usuário inativo '%s'", username)
        return jsonify({"ok": False, "error": "Usuário desativado."}), 403

    session.clear()
    # expira conforme PERMANENT_SESSION_LIFETIME
    session.permanent = True
    session["user_id"] = user.id
    current_app.logger.info("login: %s", user.username)
    return jsonify({"ok": True, "user": user.to_dict()})


@bp.post("/logout")
def logout():
    session.clear()
    return jsonify({"ok": True})


@bp.get("/me")
@login_required
def me():
    return jsonify({"ok": True, "user": g.user.to_dict()})
