"""
Database layer — Notification queue persistence.

Backends:
  - SQL (PostgreSQL / SQLite via SQLAlchemy async)
  - In-memory (dict-based, for development/testing)

Quick start:
  from database import create_store
  store, directory = create_store("memory")
  batch = await store.fetch_eligible_batch(limit=50, max_retries=3)
"""
from database.models import (
    Base, UserRow, OwnerProfileRow, StablemateRow, TrainerProfileRow, HorseRow, NotificationQueueRow,
)
from database.session import get_engine, get_session, init_db, ensure_claim_column, close_db
from database.store_base import BaseNotificationStore, BaseRecipientDirectory
from database.store import SqlNotificationStore, SqlRecipientDirectory
from database.store_memory import InMemoryNotificationStore, InMemoryRecipientDirectory
from database.store_factory import create_store

__all__ = [
    # ORM models
    "Base", "UserRow", "OwnerProfileRow", "StablemateRow", "TrainerProfileRow", "HorseRow",
    "NotificationQueueRow",
    # Session management
    "get_engine", "get_session", "init_db", "ensure_claim_column", "close_db",
    # Store interfaces
    "BaseNotificationStore", "BaseRecipientDirectory",
    # Store backends
    "SqlNotificationStore", "SqlRecipientDirectory",
    "InMemoryNotificationStore", "InMemoryRecipientDirectory",
    # Factory
    "create_store",
]
