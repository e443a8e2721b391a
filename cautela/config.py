import os
from datetime import timedelta


def _database_uri():
    uri = os.environ.get("DATABASE_URL")
    if not uri:
        # None -> create_app aponta para instance/cautela.db
        return None
    # Render/Heroku ainda entregam "postgres://", que o SQLAlchemy recusa
    if uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)
    return uri


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = _database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # base do front-end de assinatura, ex.: https://cautela.exemplo.com
    PUBLIC_BASE_URL = (os.environ.get("PUBLIC_BASE_URL") or "").rstrip("/") or None

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # assinatura + foto chegam em base64 no corpo JSON
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", 10 * 1024 * 1024))

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    # vale para sessões marcadas como permanentes (todas, após o login)
    PERMANENT_SESSION_LIFETIME = timedelta(hours=int(os.environ.get("SESSION_HOURS", 8)))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    PUBLIC_BASE_URL = "http://front.test"
    LOG_LEVEL = "WARNING"
