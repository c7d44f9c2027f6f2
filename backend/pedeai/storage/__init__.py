"""Storage abstraction layer for PedeAí."""

from .base import Storage
from .inmemory import InMemoryStorage
from .sqlalchemy_adapter import SQLAlchemyStorage
from .local import LocalStore

__all__ = ["Storage", "InMemoryStorage", "SQLAlchemyStorage", "LocalStore"]
