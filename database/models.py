"""
SQLAlchemy ORM models — Cross-database compatible.

Supports: PostgreSQL, SQLite.

Key design decisions:
  - The tables belong to the web application, whose schema uses snake_case
    table names and quoted camelCase column names ("horseId", "createdAt").
    Python attributes stay snake_case; each column carries its real name.
  - JSON type instead of PostgreSQL-specific JSONB; on PG the dialect maps
    JSON to jsonb automatically; on SQLite it serializes to TEXT.
  - String primary keys (uuid hex), no database-specific sequences.
  - Only the tables the notification path reads or writes are mapped.
  - "claimedAt" is the one column the processor adds to the application
    schema; scripts/migrate_db.py adds it to an existing queue table.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    String, Integer, Boolean, DateTime, Text, ForeignKey,
    Index, JSON,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all ORM models."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:16]


# ──────────────────────────────────────────────────────────────
#  Users and owner profiles
# ──────────────────────────────────────────────────────────────

class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)


class OwnerProfileRow(Base):
    __tablename__ = "owner_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column("userId", String(64), ForeignKey("users.id"), nullable=False)
    official_name: Mapped[str] = mapped_column("officialName", String(256), default="")

    user: Mapped[Optional["UserRow"]] = relationship(lazy="selectin")


class _NotifyFlagsMixin:
    """One opt-in flag per notification category."""
    notify_new_race: Mapped[bool] = mapped_column("notifyNewRace", Boolean, default=True)
    notify_horse_registered: Mapped[bool] = mapped_column("notifyHorseRegistered", Boolean, default=True)
    notify_horse_declared: Mapped[bool] = mapped_column("notifyHorseDeclared", Boolean, default=True)
    notify_new_training: Mapped[bool] = mapped_column("notifyNewTraining", Boolean, default=True)


# ──────────────────────────────────────────────────────────────
#  Stablemates (owner side) and trainers
# ──────────────────────────────────────────────────────────────

class StablemateRow(_NotifyFlagsMixin, Base):
    __tablename__ = "stablemates"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(256), default="")
    owner_id: Mapped[str] = mapped_column("ownerId", String(64), ForeignKey("owner_profiles.id"), nullable=False)

    owner: Mapped[Optional["OwnerProfileRow"]] = relationship(lazy="selectin")


class TrainerProfileRow(_NotifyFlagsMixin, Base):
    __tablename__ = "trainer_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    full_name: Mapped[str] = mapped_column("fullName", String(256), default="")
    user_id: Mapped[str] = mapped_column("userId", String(64), ForeignKey("users.id"), nullable=False)

    user: Mapped[Optional["UserRow"]] = relationship(lazy="selectin")


# ──────────────────────────────────────────────────────────────
#  Horses
# ──────────────────────────────────────────────────────────────

class HorseRow(Base):
    __tablename__ = "horses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    stablemate_id: Mapped[str] = mapped_column("stablemateId", String(64), ForeignKey("stablemates.id"), nullable=False)
    trainer_id: Mapped[Optional[str]] = mapped_column("trainerId", String(64), ForeignKey("trainer_profiles.id"), nullable=True)

    __table_args__ = (
        Index("ix_horses_stablemate", "stablemateId"),
    )


# ──────────────────────────────────────────────────────────────
#  Notification queue
# ──────────────────────────────────────────────────────────────

class NotificationQueueRow(Base):
    __tablename__ = "notification_queue"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    horse_id: Mapped[str] = mapped_column("horseId", String(64), ForeignKey("horses.id"), nullable=False)
    data: Mapped[Any] = mapped_column(JSON, default=dict)

    status: Mapped[str] = mapped_column(String(16), default="PENDING")
    retry_count: Mapped[int] = mapped_column("retryCount", Integer, default=0)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime(timezone=True), default=_utcnow)
    claimed_at: Mapped[Optional[datetime]] = mapped_column("claimedAt", DateTime(timezone=True), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column("processedAt", DateTime(timezone=True), nullable=True)

    horse: Mapped["HorseRow"] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_notification_queue_status_created", "status", "createdAt"),
        Index("ix_notification_queue_horse", "horseId"),
    )
