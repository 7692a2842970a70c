"""
SQL stores — Portable SQLAlchemy queries for PostgreSQL and SQLite.

The claim is a conditional UPDATE (status must still be PENDING) whose
affected-row count tells the caller whether it won the job, so two
processor runs against the same database never both deliver one job.
"""
from __future__ import annotations

import structlog
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update, and_, or_, func

from database.models import (
    HorseRow, NotificationQueueRow, StablemateRow, TrainerProfileRow,
)
from database.session import get_session
from database.store_base import BaseNotificationStore, BaseRecipientDirectory
from models.schemas import (
    HorseRecord, NotificationJob, NotificationSettings, NotificationStatus,
    RecipientProfile,
)

logger = structlog.get_logger()

_UPDATABLE_FIELDS = {"status", "retry_count", "error", "processed_at", "claimed_at"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SqlNotificationStore(BaseNotificationStore):
    """
    Persistent job store over the notification_queue table.
    Each operation runs in its own short transaction.
    """

    # ── Processor operations ───────────────────────────────

    async def fetch_eligible_batch(
        self,
        limit: int,
        max_retries: int,
        after: Optional[tuple[datetime, str]] = None,
    ) -> list[NotificationJob]:
        q = NotificationQueueRow
        stmt = select(q).where(and_(
            q.status == NotificationStatus.PENDING.value,
            q.retry_count < max_retries,
        ))
        if after is not None:
            after_created, after_id = after
            stmt = stmt.where(or_(
                q.created_at > after_created,
                and_(q.created_at == after_created, q.id > after_id),
            ))
        stmt = stmt.order_by(q.created_at.asc(), q.id.asc()).limit(limit)

        async with get_session() as db:
            result = await db.execute(stmt)
            return [self._row_to_job(row) for row in result.scalars()]

    async def claim(self, job_id: str, max_retries: int) -> bool:
        q = NotificationQueueRow
        stmt = (
            update(q)
            .where(and_(
                q.id == job_id,
                q.status == NotificationStatus.PENDING.value,
                q.retry_count < max_retries,
            ))
            .values(status=NotificationStatus.PROCESSING.value, claimed_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        async with get_session() as db:
            result = await db.execute(stmt)
            return result.rowcount == 1

    async def update_status(
        self,
        job_id: str,
        expected_status: Optional[NotificationStatus] = None,
        **fields: Any,
    ) -> bool:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if "status" in fields:
            fields["status"] = NotificationStatus(fields["status"]).value

        q = NotificationQueueRow
        stmt = update(q).where(q.id == job_id)
        if expected_status is not None:
            stmt = stmt.where(q.status == NotificationStatus(expected_status).value)
        stmt = stmt.values(**fields).execution_options(synchronize_session=False)

        async with get_session() as db:
            result = await db.execute(stmt)
            return result.rowcount == 1

    async def find_stale_claims(self, older_than: datetime) -> list[NotificationJob]:
        q = NotificationQueueRow
        stmt = (
            select(q)
            .where(and_(
                q.status == NotificationStatus.PROCESSING.value,
                or_(q.claimed_at.is_(None), q.claimed_at < older_than),
            ))
            .order_by(q.created_at.asc(), q.id.asc())
        )
        async with get_session() as db:
            result = await db.execute(stmt)
            return [self._row_to_job(row) for row in result.scalars()]

    # ── Producer / inspection operations ───────────────────

    async def enqueue(
        self,
        notification_type: str,
        horse_id: str,
        data: dict[str, Any] = None,
        job_id: str = "",
        created_at: Optional[datetime] = None,
    ) -> NotificationJob:
        async with get_session() as db:
            row = NotificationQueueRow(
                type=notification_type,
                horse_id=horse_id,
                data=data or {},
                status=NotificationStatus.PENDING.value,
                retry_count=0,
                created_at=created_at or _utcnow(),
            )
            if job_id:
                row.id = job_id
            db.add(row)
            await db.flush()
            horse = await db.get(HorseRow, horse_id)
            return NotificationJob(
                id=row.id,
                type=row.type,
                horse_id=row.horse_id,
                data=row.data,
                status=NotificationStatus.PENDING,
                retry_count=0,
                created_at=row.created_at,
                horse_name=horse.name if horse else None,
            )

    async def get_job(self, job_id: str) -> Optional[NotificationJob]:
        async with get_session() as db:
            row = await db.get(NotificationQueueRow, job_id)
            return self._row_to_job(row) if row else None

    async def count_by_status(self) -> dict[str, int]:
        counts = {s.value: 0 for s in NotificationStatus}
        q = NotificationQueueRow
        async with get_session() as db:
            result = await db.execute(select(q.status, func.count()).group_by(q.status))
            for status, count in result.all():
                counts[status] = count
        return counts

    # ── Helpers ────────────────────────────────────────────

    @staticmethod
    def _row_to_job(row: NotificationQueueRow) -> NotificationJob:
        return NotificationJob(
            id=row.id,
            type=row.type,
            horse_id=row.horse_id,
            data=row.data or {},
            status=NotificationStatus(row.status),
            retry_count=row.retry_count or 0,
            error=row.error,
            created_at=row.created_at,
            claimed_at=row.claimed_at,
            processed_at=row.processed_at,
            horse_name=row.horse.name if row.horse else None,
        )


class SqlRecipientDirectory(BaseRecipientDirectory):
    """Resolves horses and their owner / trainer from the application tables."""

    async def get_horse(self, horse_id: str) -> Optional[HorseRecord]:
        async with get_session() as db:
            row = await db.get(HorseRow, horse_id)
            if not row:
                return None
            return HorseRecord(
                id=row.id, name=row.name,
                stablemate_id=row.stablemate_id, trainer_id=row.trainer_id,
            )

    async def get_stablemate(self, stablemate_id: str) -> Optional[RecipientProfile]:
        async with get_session() as db:
            row = await db.get(StablemateRow, stablemate_id)
            if not row:
                return None
            owner = row.owner
            email = owner.user.email if owner and owner.user else None
            return RecipientProfile(
                id=row.id,
                email=email,
                name=row.name or email,
                settings=self._settings_of(row),
            )

    async def get_trainer(self, trainer_id: str) -> Optional[RecipientProfile]:
        async with get_session() as db:
            row = await db.get(TrainerProfileRow, trainer_id)
            if not row:
                return None
            return RecipientProfile(
                id=row.id,
                email=row.user.email if row.user else None,
                name=row.full_name or None,
                settings=self._settings_of(row),
            )

    @staticmethod
    def _settings_of(row: StablemateRow | TrainerProfileRow) -> NotificationSettings:
        return NotificationSettings(
            new_race=row.notify_new_race,
            horse_registered=row.notify_horse_registered,
            horse_declared=row.notify_horse_declared,
            new_training=row.notify_new_training,
        )
