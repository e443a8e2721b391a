"""
Pytest Configuration and Shared Fixtures.

App com SQLite em memória, cliente HTTP e um administrador já logado.
"""

from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from cautela import create_app, db
from cautela.config import TestConfig
from cautela.models import ROLE_ADMIN, ROLE_USER, User

ADMIN_PASSWORD = "admin-senha-123"
USER_PASSWORD = "user-senha-123"


@pytest.fixture
def app():
    """Create a fresh application with an empty in-memory database."""
    app = create_app(TestConfig)
    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _create_user(app, username, password, role, ativo=True) -> int:
    with app.app_context():
        user = User(
            username=username,
            email=f"{username}@exemplo.com",
            nome_completo=username.title(),
            role=role,
            ativo=ativo,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id


@pytest.fixture
def admin_id(app) -> int:
    return _create_user(app, "admin", ADMIN_PASSWORD, ROLE_ADMIN)


@pytest.fixture
def user_id(app) -> int:
    return _create_user(app, "operador", USER_PASSWORD, ROLE_USER)


@pytest.fixture
def admin_client(client, admin_id):
    """Test client with an admin session."""
    resp = client.post("/api/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    return client


@pytest.fixture
def user_client(app, user_id):
    """Separate test client logged in as a non-admin user."""
    client = app.test_client()
    resp = client.post("/api/auth/login", json={"username": "operador", "password": USER_PASSWORD})
    assert resp.status_code == 200
    return client


def _image_data_url(fmt: str, mime: str, color: str) -> str:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color).save(buf, fmt)
    return f"data:{mime};base64," + base64.b64encode(buf.getvalue()).decode("ascii")


@pytest.fixture
def png_data_url() -> str:
    """Small PNG as a data URL (drawn signature)."""
    return _image_data_url("PNG", "image/png", "white")


@pytest.fixture
def jpeg_data_url() -> str:
    """Small JPEG as a data URL (camera photo)."""
    return _image_data_url("JPEG", "image/jpeg", "gray")


@pytest.fixture
def cautela_payload() -> dict:
    return {
        "material": "Notebook Dell",
        "descricao": "Latitude 5420 com carregador",
        "tipo_material": "permanente",
        "quantidade": 1,
        "responsavel_nome": "João da Silva",
        "responsavel_email": "joao@exemplo.com",
    }
