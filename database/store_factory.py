"""
Store Factory — Create the job store and recipient directory backends.

Backends:
  "sql"     — the configured database (production)
  "memory"  — in-memory dicts (tests, dry runs)

Usage:
    from database.store_factory import create_store
    store, directory = create_store("sql")
"""
from __future__ import annotations

import structlog

from database.store_base import BaseNotificationStore, BaseRecipientDirectory

logger = structlog.get_logger()


def create_store(backend: str = "sql") -> tuple[BaseNotificationStore, BaseRecipientDirectory]:
    """
    Factory: create the job store and the recipient directory for a backend.

    Args:
        backend: "sql" | "memory"  (default: "sql")
    """
    if backend == "memory":
        from database.store_memory import InMemoryNotificationStore, InMemoryRecipientDirectory
        store, directory = InMemoryNotificationStore(), InMemoryRecipientDirectory()

    elif backend == "sql":
        from database.store import SqlNotificationStore, SqlRecipientDirectory
        store, directory = SqlNotificationStore(), SqlRecipientDirectory()

    else:
        raise ValueError(f"Unknown store backend: {backend!r}")

    logger.info("store_created", backend=backend)
    return store, directory
