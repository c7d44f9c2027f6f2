"""
Relational models mirroring the hosted PedeAí tables.

Column names follow the remote schema (Portuguese, mostly loosely typed
strings) so records read back through to_dict() look exactly like what the
dashboard receives from the remote store. These models are also the target
metadata for Alembic.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, ForeignKey, Index, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _iso(dt):
    if dt is None:
        return None
    # Naive columns hold UTC
    return dt.isoformat() + "Z" if dt.tzinfo is None else dt.isoformat()


class Restaurante(Base):
    """A restaurant account: login record plus its settings."""

    __tablename__ = "restaurantes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    nome = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    senha = Column(String(255), nullable=True)  # passlib hash
    telefone = Column(String(50), nullable=True)
    quantidade_mesas = Column(String(10), nullable=True)
    quantidade_max_mesas = Column(String(10), nullable=True)
    horario_fecha_cozinha = Column(String(10), nullable=True)
    configuracoes = Column(JSON, nullable=True)  # remaining dashboard settings
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    pedidos = relationship("Pedido", back_populates="restaurante", cascade="all, delete-orphan")
    produtos = relationship("Produto", back_populates="restaurante", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "nome": self.nome,
            "email": self.email,
            "senha": self.senha,
            "telefone": self.telefone,
            "quantidade_mesas": self.quantidade_mesas,
            "quantidade_max_mesas": self.quantidade_max_mesas,
            "horario_fecha_cozinha": self.horario_fecha_cozinha,
            "configuracoes": dict(self.configuracoes or {}),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Restaurante(id={self.id}, nome={self.nome})>"


class Pedido(Base):
    """Order as written by the ordering channel (string-encoded fields)."""

    __tablename__ = "pedidos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurante_id = Column(String(36), ForeignKey("restaurantes.id"), nullable=True, index=True)
    mesa = Column(String(50), nullable=True)  # "Mesa 7", "7", ...
    itens = Column(Text, nullable=True)  # "Suco, Suco, Bolo"
    quantidade = Column(String(20), nullable=True)
    subtotal = Column("Subtotal", String(50), nullable=True)  # "R$ 27,00"
    status = Column(String(50), nullable=True)
    descricao = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_pedidos_restaurante_mesa", "restaurante_id", "mesa"),
        Index("idx_pedidos_created", "created_at"),
    )

    restaurante = relationship("Restaurante", back_populates="pedidos")

    def to_dict(self):
        return {
            "id": self.id,
            "restaurante_id": self.restaurante_id,
            "mesa": self.mesa,
            "itens": self.itens,
            "quantidade": self.quantidade,
            "Subtotal": self.subtotal,
            "status": self.status,
            "descricao": self.descricao,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Pedido(id={self.id}, mesa={self.mesa}, status={self.status})>"


class Produto(Base):
    """Catalog item."""

    __tablename__ = "produtos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurante_id = Column(String(36), ForeignKey("restaurantes.id"), nullable=True, index=True)
    nome = Column(String(255), nullable=True)
    preco = Column(String(50), nullable=True)
    categoria = Column(String(100), nullable=True)
    estacao = Column(String(20), nullable=True)  # bar / kitchen
    estoque = Column(Integer, nullable=True)
    estoque_minimo = Column(Integer, nullable=True)
    descricao = Column(Text, nullable=True)
    ativo = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    restaurante = relationship("Restaurante", back_populates="produtos")

    def to_dict(self):
        return {
            "id": self.id,
            "restaurante_id": self.restaurante_id,
            "nome": self.nome,
            "preco": self.preco,
            "categoria": self.categoria,
            "estacao": self.estacao,
            "estoque": self.estoque,
            "estoque_minimo": self.estoque_minimo,
            "descricao": self.descricao,
            "ativo": self.ativo,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Produto(id={self.id}, nome={self.nome}, preco={self.preco})>"


class Usuario(Base):
    """CRM customer seen by the ordering channel."""

    __tablename__ = "usuarios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    id_restaurante = Column(String(36), ForeignKey("restaurantes.id"), nullable=True, index=True)
    nome = Column(String(255), nullable=True)
    telefone = Column(String(50), nullable=True)
    mesa_atual = Column(String(50), nullable=True)
    quantas_vezes_foi = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "id_restaurante": self.id_restaurante,
            "nome": self.nome,
            "telefone": self.telefone,
            "mesa_atual": self.mesa_atual,
            "quantas_vezes_foi": self.quantas_vezes_foi,
            "created_at": _iso(self.created_at),
        }


class AdminUser(Base):
    """Console administrators."""

    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    roles = Column(JSON, default=list, nullable=False)  # e.g. ["admin"]
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "password_hash": self.password_hash,
            "roles": list(self.roles or []),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<AdminUser(id={self.id}, email={self.email})>"


class SystemLog(Base):
    """Audit trail of dashboard events, read from the admin console."""

    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    level = Column(String(20), nullable=False)  # error / warning / info / success
    category = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)
    details = Column(Text, nullable=True)  # JSON-encoded
    restaurant_id = Column(String(36), nullable=True, index=True)
    user_agent = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_system_logs_created", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "level": self.level,
            "category": self.category,
            "message": self.message,
            "details": self.details,
            "restaurant_id": self.restaurant_id,
            "user_agent": self.user_agent,
            "ip_address": self.ip_address,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<SystemLog(id={self.id}, level={self.level}, category={self.category})>"
