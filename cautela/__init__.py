import logging
from pathlib import Path

import click
from flask import Flask
from flask.cli import with_appcontext
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import IntegrityError

db = SQLAlchemy()


def create_app(config=None):
    app = Flask(__name__, instance_relative_config=True)

    # Pasta instance (para SQLite)
    Path(app.instance_path).mkdir(parents=True, exist_ok=True)

    app.config.from_object("cautela.config.Config")
    if config:
        if isinstance(config, dict):
            app.config.update(config)
        else:
            app.config.from_object(config)

    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{Path(app.instance_path) / 'cautela.db'}"

    _configure_logging(app)

    db.init_app(app)

    # importa models (pra criar tabelas)
    from .models import User, Cautela, Assinatura  # noqa: F401

    # auth: login/logout + carrega o usuário da sessão em g.user
    from .auth import bp as auth_bp, load_current_user
    app.register_blueprint(auth_bp)
    app.before_request(load_current_user)

    from .routes import bp as api_bp
    app.register_blueprint(api_bp)

    from .users import bp as users_bp
    app.register_blueprint(users_bp)

    app.cli.add_command(create_admin_command)

    with app.app_context():
        db.create_all()

    app.logger.info("cautela iniciado (db=%s)", app.config["SQLALCHEMY_DATABASE_URI"].split("://", 1)[0])
    return app


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)


@click.command("create-admin")
@click.argument("username")
@click.argument("email")
@click.option("--nome", default=None, help="Nome completo do administrador.")
@click.password_option()
@with_appcontext
def create_admin_command(username, email, nome, password):
    """Cria um usuário administrador."""
    from flask import current_app
    from .models import User, ROLE_ADMIN

    user = User(
        username=username.strip(),
        email=email.strip().lower(),
        nome_completo=(nome or "").strip() or None,
        role=ROLE_ADMIN,
        ativo=True,
    )
    user.set_password(password)
    db.session.add(user)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise click.ClickException("Já existe um usuário com esse username ou email.")

    current_app.logger.info("administrador criado: %s", user.username)
    click.echo(f"Administrador '{user.username}' criado.")
