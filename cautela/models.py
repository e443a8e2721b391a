import uuid
from datetime import datetime, timezone

from sqlalchemy import func
from werkzeug.security import check_password_hash, generate_password_hash

from . import db
from .query import (
    ASSINATURA_CAUTELA,
    STATUS_PENDENTE,
    TIPO_PERMANENTE,
)

ROLE_ADMIN = "admin"
ROLE_USER = "user"
VALID_ROLES = {ROLE_ADMIN, ROLE_USER}


def utcnow():
    # UTC sem tzinfo, como o SQLite devolve
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_token():
    return uuid.uuid4().hex


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(160), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    nome_completo = db.Column(db.String(160))
    role = db.Column(db.String(16), nullable=False, default=ROLE_USER)
    ativo = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "nome_completo": self.nome_completo,
            "role": self.role,
            "ativo": bool(self.ativo),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"


class Cautela(db.Model):
    __tablename__ = "cautelas"

    id = db.Column(db.Integer, primary_key=True)

    # token do link de assinatura; trocado a cada descautela
    uuid = db.Column(db.String(32), unique=True, nullable=False, index=True, default=new_token)

    material = db.Column(db.String(160), nullable=False)
    descricao = db.Column(db.Text)
    tipo_material = db.Column(db.String(16), nullable=False, default=TIPO_PERMANENTE)
    quantidade = db.Column(db.Integer, nullable=False, default=1)

    responsavel_nome = db.Column(db.String(160), nullable=False)
    responsavel_email = db.Column(db.String(160), nullable=False)

    # pendente / cautelado / descautelado / cancelado
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDENTE, index=True)

    # qual assinatura o link atual espera: cautela / descautela / None
    assinatura_pendente = db.Column(db.String(16), nullable=True, default=ASSINATURA_CAUTELA)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    data_criacao = db.Column(db.DateTime, nullable=False, default=utcnow)
    data_retirada = db.Column(db.DateTime, nullable=True)
    data_devolucao = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    created_by = db.relationship("User")

    assinaturas = db.relationship(
        "Assinatura",
        back_populates="cautela",
        cascade="all, delete-orphan",
        order_by="Assinatura.id",
        lazy=True,
    )

    @property
    def ultima_assinatura(self):
        return self.assinaturas[-1] if self.assinaturas else None

    def to_dict(self, link_assinatura=None):
        ultima = self.ultima_assinatura
        return {
            "id": self.id,
            "uuid": self.uuid,
            "material": self.material,
            "descricao": self.descricao,
            "tipo_material": self.tipo_material,
            "quantidade": self.quantidade,
            "responsavel_nome": self.responsavel_nome,
            "responsavel_email": self.responsavel_email,
            "status": self.status,
            "assinatura_pendente": self.assinatura_pendente,
            "link_assinatura": link_assinatura,
            "data_criacao": _iso(self.data_criacao),
            "data_retirada": _iso(self.data_retirada),
            "data_devolucao": _iso(self.data_devolucao),
            "assinatura_base64": ultima.assinatura_base64 if ultima else None,
            "data_assinatura": _iso(ultima.data_assinatura) if ultima else None,
        }

    def __repr__(self):
        return f"<Cautela {self.id} {self.material} status={self.status}>"


class Assinatura(db.Model):
    __tablename__ = "assinaturas"

    id = db.Column(db.Integer, primary_key=True)
    cautela_id = db.Column(db.Integer, db.ForeignKey("cautelas.id"), nullable=False, index=True)

    # cautela / descautela
    tipo_assinatura = db.Column(db.String(16), nullable=False, index=True)

    nome = db.Column(db.String(160), nullable=False)
    cargo = db.Column(db.String(120))

    # data URLs (data:image/png;base64,...)
    assinatura_base64 = db.Column(db.Text, nullable=False)
    foto_base64 = db.Column(db.Text, nullable=False)

    ip = db.Column(db.String(64))
    data_assinatura = db.Column(db.DateTime, nullable=False, default=utcnow, server_default=func.now())

    cautela = db.relationship("Cautela", back_populates="assinaturas")

    def to_dict(self):
        return {
            "id": self.id,
            "cautela_id": self.cautela_id,
            "tipo_assinatura": self.tipo_assinatura,
            "nome": self.nome,
            "cargo": self.cargo,
            "assinatura_base64": self.assinatura_base64,
            "foto_base64": self.foto_base64,
            "data_assinatura": _iso(self.data_assinatura),
        }

    def __repr__(self):
        return f"<Assinatura {self.id} {self.tipo_assinatura} cautela={self.cautela_id}>"
