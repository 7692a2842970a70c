"""
Abstract stores — Interfaces the queue processor and the sender depend on.

Implementations:
  - SqlNotificationStore / SqlRecipientDirectory       (SQLAlchemy, PostgreSQL / SQLite)
  - InMemoryNotificationStore / InMemoryRecipientDirectory  (dict-based, tests and dev)

The processor only ever talks to BaseNotificationStore, so it holds no
direct storage dependency and can run against the in-memory fake.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from models.schemas import (
    HorseRecord, NotificationJob, NotificationStatus, RecipientProfile,
)


class BaseNotificationStore(ABC):
    """Interface that all job store backends must implement."""

    # ── Processor operations ──────────────────────────────────

    @abstractmethod
    async def fetch_eligible_batch(
        self,
        limit: int,
        max_retries: int,
        after: Optional[tuple[datetime, str]] = None,
    ) -> list[NotificationJob]:
        """
        Return up to `limit` jobs with status PENDING and retry_count < max_retries,
        oldest first by (created_at, id), strictly after the `after` cursor.
        """
        ...

    @abstractmethod
    async def claim(self, job_id: str, max_retries: int) -> bool:
        """
        Atomically move an eligible job PENDING → PROCESSING.
        Returns False if the job was not eligible any more (e.g. another
        processor claimed it first).
        """
        ...

    @abstractmethod
    async def update_status(
        self,
        job_id: str,
        expected_status: Optional[NotificationStatus] = None,
        **fields: Any,
    ) -> bool:
        """
        Write status / retry_count / error / processed_at / claimed_at.
        With `expected_status`, the write only happens if the job is still in
        that status. Returns whether a row was changed.
        """
        ...

    @abstractmethod
    async def find_stale_claims(self, older_than: datetime) -> list[NotificationJob]:
        """PROCESSING jobs claimed before `older_than` (left behind by a crashed run)."""
        ...

    # ── Producer / inspection operations ──────────────────────

    @abstractmethod
    async def enqueue(
        self,
        notification_type: str,
        horse_id: str,
        data: dict[str, Any] = None,
        job_id: str = "",
        created_at: Optional[datetime] = None,
    ) -> NotificationJob:
        ...

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[NotificationJob]:
        ...

    @abstractmethod
    async def count_by_status(self) -> dict[str, int]:
        ...


class BaseRecipientDirectory(ABC):
    """Read-only lookups the sender needs to resolve who gets notified."""

    @abstractmethod
    async def get_horse(self, horse_id: str) -> Optional[HorseRecord]:
        ...

    @abstractmethod
    async def get_stablemate(self, stablemate_id: str) -> Optional[RecipientProfile]:
        ...

    @abstractmethod
    async def get_trainer(self, trainer_id: str) -> Optional[RecipientProfile]:
        ...
