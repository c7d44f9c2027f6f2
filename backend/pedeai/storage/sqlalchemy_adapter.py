"""
SQLAlchemy storage implementation for the PedeAí remote tables.

Maps the Storage interface onto the models in pedeai.db.models. Every call
opens its own session, so the adapter is safe to use from worker threads.
"""

import logging
import os
from typing import Dict, List, Any, Optional

from sqlalchemy import create_engine, select, delete, func
from sqlalchemy.orm import sessionmaker, Session

from pedeai.storage.base import Storage
from pedeai.db.models import Base, Restaurante, Pedido, Produto, Usuario, AdminUser, SystemLog
from pedeai.db import init_db

logger = logging.getLogger(__name__)

# Remote column name -> mapped attribute, where they differ
_PEDIDO_ATTRS = {"Subtotal": "subtotal"}
_READ_ONLY = {"id", "created_at", "restaurante_id", "id_restaurante"}


def _assign(model, values: Dict[str, Any], renames: Optional[Dict[str, str]] = None) -> None:
    renames = renames or {}
    for key, value in values.items():
        if key in _READ_ONLY:
            continue
        attr = renames.get(key, key)
        if hasattr(model, attr):
            setattr(model, attr, value)


class SQLAlchemyStorage(Storage):
    """SQLAlchemy-backed storage for restaurants, orders, products and customers."""

    def __init__(self, database_url: str = "sqlite:///pedeai.db"):
        """
        Initialize SQLAlchemy storage.

        Args:
            database_url: SQLAlchemy database URL
        """
        super().__init__()
        self.database_url = database_url

        self.engine = create_engine(
            self.database_url,
            connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
            echo=False,
            future=True,
            pool_pre_ping=True,
        )
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        use_alembic = os.getenv("USE_ALEMBIC", "false").lower() == "true"
        init_db(self.engine, use_alembic=use_alembic, base=Base)
        logger.info("Database initialized at %s", self.database_url)

    def _get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    # ---------- restaurants ----------

    def create_restaurant(self, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._get_session() as session, session.begin():
            restaurant = Restaurante()
            if data.get("id"):
                restaurant.id = data["id"]
            _assign(restaurant, data)
            if restaurant.configuracoes is None:
                restaurant.configuracoes = {}
            session.add(restaurant)
            session.flush()
            return restaurant.to_dict()

    def get_restaurant(self, restaurant_id: str) -> Optional[Dict[str, Any]]:
        with self._get_session() as session:
            restaurant = session.get(Restaurante, restaurant_id)
            return restaurant.to_dict() if restaurant else None

    def find_restaurant_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        wanted = (email or "").strip().lower()
        with self._get_session() as session:
            stmt = select(Restaurante).where(func.lower(Restaurante.email) == wanted)
            restaurant = session.execute(stmt).scalars().first()
            return restaurant.to_dict() if restaurant else None

    def list_restaurants(self) -> List[Dict[str, Any]]:
        with self._get_session() as session:
            stmt = select(Restaurante).order_by(Restaurante.created_at.desc())
            return [r.to_dict() for r in session.execute(stmt).scalars().all()]

    def update_restaurant(self, restaurant_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        with self._get_session() as session, session.begin():
            restaurant = session.get(Restaurante, restaurant_id)
            if restaurant is None:
                raise KeyError(restaurant_id)
            if "configuracoes" in updates:
                # Reassign so the JSON column is flagged dirty
                merged = dict(restaurant.configuracoes or {})
                merged.update(updates["configuracoes"] or {})
                updates = {**updates, "configuracoes": merged}
            _assign(restaurant, updates)
            session.flush()
            return restaurant.to_dict()

    # ---------- orders ----------

    def list_orders(self, restaurant_id: str) -> List[Dict[str, Any]]:
        with self._get_session() as session:
            stmt = (
                select(Pedido)
                .where(Pedido.restaurante_id == restaurant_id)
                .order_by(Pedido.created_at.desc(), Pedido.id.desc())
            )
            return [p.to_dict() for p in session.execute(stmt).scalars().all()]

    def insert_order(self, restaurant_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._get_session() as session, session.begin():
            pedido = Pedido(restaurante_id=restaurant_id)
            _assign(pedido, record, _PEDIDO_ATTRS)
            session.add(pedido)
            session.flush()
            stored = pedido.to_dict()
        self._notify("INSERT", stored)
        return stored

    def update_order_status(self, order_id: int, status: str) -> bool:
        with self._get_session() as session, session.begin():
            pedido = session.get(Pedido, order_id)
            if pedido is None:
                return False
            pedido.status = status
            session.flush()
            stored = pedido.to_dict()
        self._notify("UPDATE", stored)
        return True

    def delete_order(self, order_id: int) -> bool:
        with self._get_session() as session, session.begin():
            pedido = session.get(Pedido, order_id)
            if pedido is None:
                return False
            stored = pedido.to_dict()
            session.delete(pedido)
        self._notify("DELETE", stored)
        return True

    # ---------- products ----------

    def list_products(self, restaurant_id: str) -> List[Dict[str, Any]]:
        with self._get_session() as session:
            stmt = (
                select(Produto)
                .where(Produto.restaurante_id == restaurant_id)
                .order_by(Produto.created_at.desc(), Produto.id.desc())
            )
            return [p.to_dict() for p in session.execute(stmt).scalars().all()]

    def insert_product(self, restaurant_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._get_session() as session, session.begin():
            produto = Produto(restaurante_id=restaurant_id)
            _assign(produto, record)
            session.add(produto)
            session.flush()
            return produto.to_dict()

    def update_product(self, restaurant_id: str, product_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._get_session() as session, session.begin():
            produto = session.get(Produto, product_id)
            if produto is None or produto.restaurante_id != restaurant_id:
                return None
            _assign(produto, updates)
            session.flush()
            return produto.to_dict()

    def delete_product(self, restaurant_id: str, product_id: int) -> bool:
        with self._get_session() as session, session.begin():
            result = session.execute(
                delete(Produto)
                .where(Produto.id == product_id)
                .where(Produto.restaurante_id == restaurant_id)
            )
            return result.rowcount > 0

    def adjust_stock(self, product_id: int, delta: int) -> Optional[Dict[str, Any]]:
        with self._get_session() as session, session.begin():
            produto = session.get(Produto, product_id)
            if produto is None:
                return None
            produto.estoque = max(0, (produto.estoque or 0) + delta)
            session.flush()
            return produto.to_dict()

    # ---------- customers ----------

    def list_users(self, restaurant_id: str) -> List[Dict[str, Any]]:
        with self._get_session() as session:
            stmt = select(Usuario).where(Usuario.id_restaurante == restaurant_id).order_by(Usuario.id)
            return [u.to_dict() for u in session.execute(stmt).scalars().all()]

    def insert_user(self, restaurant_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._get_session() as session, session.begin():
            usuario = Usuario(id_restaurante=restaurant_id)
            _assign(usuario, record)
            session.add(usuario)
            session.flush()
            return usuario.to_dict()

    # ---------- admins ----------

    def create_admin(self, email: str, password_hash: str, roles: List[str]) -> Dict[str, Any]:
        if self.find_admin(email) is not None:
            raise ValueError(f"admin {email} already exists")
        with self._get_session() as session, session.begin():
            admin = AdminUser(email=email.strip(), password_hash=password_hash, roles=list(roles))
            session.add(admin)
            session.flush()
            return admin.to_dict()

    def find_admin(self, email: str) -> Optional[Dict[str, Any]]:
        wanted = (email or "").strip().lower()
        with self._get_session() as session:
            stmt = select(AdminUser).where(func.lower(AdminUser.email) == wanted)
            admin = session.execute(stmt).scalars().first()
            return admin.to_dict() if admin else None

    # ---------- system logs ----------

    def insert_logs(self, entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        with self._get_session() as session, session.begin():
            rows = []
            for entry in entries:
                row = SystemLog()
                _assign(row, entry)
                session.add(row)
                rows.append(row)
            session.flush()
            return [row.to_dict() for row in rows]

    def list_logs(
        self,
        level: Optional[str] = None,
        category: Optional[str] = None,
        restaurant_id: Optional[str] = None,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        with self._get_session() as session:
            stmt = select(SystemLog)
            if level is not None:
                stmt = stmt.where(SystemLog.level == level)
            if category is not None:
                stmt = stmt.where(SystemLog.category == category)
            if restaurant_id is not None:
                stmt = stmt.where(SystemLog.restaurant_id == restaurant_id)
            stmt = stmt.order_by(SystemLog.created_at.desc(), SystemLog.id.desc()).limit(limit)
            return [row.to_dict() for row in session.execute(stmt).scalars().all()]

    def clear(self) -> None:
        """Delete every row (children first)."""
        with self._get_session() as session, session.begin():
            for model in (SystemLog, Pedido, Produto, Usuario, AdminUser, Restaurante):
                session.execute(delete(model))

    def close(self) -> None:
        """Close database connections."""
        self.engine.dispose()
