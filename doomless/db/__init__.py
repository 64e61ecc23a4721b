"""Persistence layer: SQLAlchemy async implementation of the fact store."""

from .database import Database
from .fact_store import FactStore, SqlFactStore
from .models import Base, FactRecord

__all__ = ["Base", "Database", "FactRecord", "FactStore", "SqlFactStore"]
