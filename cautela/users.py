from flask import Blueprint, current_app, g, jsonify
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from . import db
from .auth import admin_required
from .models import ROLE_USER, VALID_ROLES, Cautela, User
from .forms import EMAIL_RE, json_body, text

bp = Blueprint("users", __name__, url_prefix="/api/users")

MIN_PASSWORD_LEN = 8


def _error(message, status=400):
    return jsonify({"ok": False, "error": message}), status


def _password(data):
    password = data.get("password")
    return password if isinstance(password, str) else ""


def _as_bool(value, default=True):
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "sim", "yes", "on"}
    return bool(value)


@bp.errorhandler(404)
def _not_found(_e):
    return _error("Usuário não encontrado.", 404)


@bp.get("")
@admin_required
def users_list():
    users = User.query.order_by(func.lower(User.username).asc()).all()
    return jsonify({"ok": True, "users": [u.to_dict() for u in users]})


@bp.post("")
@admin_required
def users_create():
    data = json_body()
    if data is None:
        return _error("Corpo da requisição deve ser um objeto JSON.")

    username = text(data, "username")
    email = text(data, "email").lower()
    password = _password(data)
    nome_completo = text(data, "nome_completo") or None
    role = text(data, "role", None) if data.get("role") else ROLE_USER

    if not username or not email:
        return _error("Preencha: usuário e email.")

    if not password:
        return _error("Senha é obrigatória para novos usuários.")

    if len(password) < MIN_PASSWORD_LEN:
        return _error(f"Senha deve ter no mínimo {MIN_PASSWORD_LEN} caracteres.")

    if not EMAIL_RE.match(email):
        return _error("Email inválido.")

    if role not in VALID_ROLES:
        return _error("Perfil inválido.")

    user = User(
        username=username,
        email=email,
        nome_completo=nome_completo,
        role=role,
        ativo=_as_bool(data.get("ativo")),
    )
    user.set_password(password)
    db.session.add(user)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _error("Já existe um usuário com esse username ou email.", 409)

    current_app.logger.info("usuário %s criado por %s", user.username, g.user.username)
    return jsonify({"ok": True, "user": user.to_dict()}), 201


@bp.put("/<int:user_id>")
@admin_required
def users_update(user_id):
    user = db.get_or_404(User, user_id)
    data = json_body()
    if data is None:
        return _error("Corpo da requisição deve ser um objeto JSON.")

    if "username" in data:
        username = text(data, "username")
        if not username:
            return _error("Usuário não pode ficar vazio.")
        user.username = username

    if "email" in data:
        email = text(data, "email").lower()
        if not EMAIL_RE.match(email):
            return _error("Email inválido.")
        user.email = email

    if "nome_completo" in data:
        user.nome_completo = text(data, "nome_completo") or None

    if "role" in data:
        role = text(data, "role")
        if role not in VALID_ROLES:
            return _error("Perfil inválido.")
        if user.id == g.user.id and role != user.role:
            return _error("Você não pode alterar o próprio perfil.", 409)
        user.role = role

    if "ativo" in data:
        ativo = _as_bool(data.get("ativo"))
        if user.id == g.user.id and not ativo:
            return _error("Você não pode desativar o próprio usuário.", 409)
        user.ativo = ativo

    # senha opcional na edição
    password = _password(data)
    if password:
        if len(password) < MIN_PASSWORD_LEN:
            return _error(f"Senha deve ter no mínimo {MIN_PASSWORD_LEN} caracteres.")
        user.set_password(password)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _error("Já existe um usuário com esse username ou email.", 409)

    current_app.logger.info("usuário %s atualizado por %s", user.username, g.user.username)
    return jsonify({"ok": True, "user": user.to_dict()})


@bp.put("/<int:user_id>/password")
@admin_required
def users_password(user_id):
    user = db.get_or_404(User, user_id)
    data = json_body()
    if data is None:
        return _error("Corpo da requisição deve ser um objeto JSON.")
    password = _password(data)

    if len(password) < MIN_PASSWORD_LEN:
        return _error(f"Senha deve ter no mínimo {MIN_PASSWORD_LEN} caracteres.")

    user.set_password(password)
    db.session.commit()

    current_app.logger.info("senha de %s alterada por %s", user.username, g.user.username)
    return jsonify({"ok": True})


@bp.delete("/<int:user_id>")
@admin_required
def users_delete(user_id):
    user = db.get_or_404(User, user_id)

    if user.id == g.user.id:
        return _error("Você não pode excluir o próprio usuário.", 409)

    username = user.username
    # cautelas continuam no histórico, sem autor
    Cautela.query.filter(Cautela.created_by_id == user.id).update({"created_by_id": None})
    db.session.delete(user)
    db.session.commit()

    current_app.logger.info("usuário %s excluído por %s", username, g.user.username)
    return jsonify({"ok": True})
