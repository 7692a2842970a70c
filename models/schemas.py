"""
Core data models for the notification queue processor.
These are the universal types shared across all modules.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel


# ──────────────────────────────────────────────────────────────
#  Enums
# ──────────────────────────────────────────────────────────────

class NotificationType(str, Enum):
    NEW_RACE = "newRace"
    HORSE_REGISTERED = "horseRegistered"
    HORSE_DECLARED = "horseDeclared"
    NEW_TRAINING = "newTraining"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SENT = "SENT"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({NotificationStatus.SENT, NotificationStatus.FAILED})


# ──────────────────────────────────────────────────────────────
#  NotificationJob — one queued notification event
# ──────────────────────────────────────────────────────────────

class NotificationJob(BaseModel):
    """A row of the notification queue, as seen by the processor."""
    id: str
    type: str                                 # a NotificationType value; validated at dispatch
    horse_id: str
    data: dict[str, Any] = {}                 # event attributes captured at enqueue time
    status: NotificationStatus = NotificationStatus.PENDING
    retry_count: int = 0
    error: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    horse_name: Optional[str] = None          # denormalized from the horse at fetch time

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def cursor(self) -> tuple[datetime, str]:
        """Keyset position in the (created_at, id) drain order."""
        return (self.created_at, self.id)


# ──────────────────────────────────────────────────────────────
#  Payloads — event-specific data handed to the sender
# ──────────────────────────────────────────────────────────────

class NotificationPayload(BaseModel):
    horse_id: str
    horse_name: str


class NewRacePayload(NotificationPayload):
    race_date: datetime
    position: Optional[int] = None
    city: Optional[str] = None
    distance: Optional[int] = None
    prize_money: Optional[float] = None


class HorseRegisteredPayload(NotificationPayload):
    registration_date: datetime
    race_date: Optional[datetime] = None
    city: Optional[str] = None
    distance: Optional[int] = None


class HorseDeclaredPayload(NotificationPayload):
    declaration_date: datetime
    race_date: datetime
    city: Optional[str] = None
    distance: Optional[int] = None
    jockey_name: Optional[str] = None


class NewTrainingPayload(NotificationPayload):
    training_date: datetime
    racecourse: Optional[str] = None
    distance: Optional[str] = None            # e.g. "400, 600, 800"


# ──────────────────────────────────────────────────────────────
#  Recipients
# ──────────────────────────────────────────────────────────────

class NotificationSettings(BaseModel):
    """Per-recipient opt-in flags, one per notification category."""
    new_race: bool = True
    horse_registered: bool = True
    horse_declared: bool = True
    new_training: bool = True

    def is_enabled(self, notification_type: NotificationType) -> bool:
        field_name = {
            NotificationType.NEW_RACE: "new_race",
            NotificationType.HORSE_REGISTERED: "horse_registered",
            NotificationType.HORSE_DECLARED: "horse_declared",
            NotificationType.NEW_TRAINING: "new_training",
        }[notification_type]
        return getattr(self, field_name)


class EmailRecipient(BaseModel):
    email: str
    name: Optional[str] = None


class RecipientProfile(BaseModel):
    """An owner's stablemate or a trainer, as far as notifications care."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    settings: NotificationSettings = NotificationSettings()


class HorseRecord(BaseModel):
    id: str
    name: str
    stablemate_id: str
    trainer_id: Optional[str] = None


# ──────────────────────────────────────────────────────────────
#  Delivery results
# ──────────────────────────────────────────────────────────────

class EmailResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class Delivered:
    message_id: str = ""


@dataclass(frozen=True)
class Skipped:
    """Recipient disabled this notification category. Not an error."""
    reason: str = "notification disabled"


@dataclass(frozen=True)
class Failed:
    reason: str


DeliveryOutcome = Union[Delivered, Skipped, Failed]


@dataclass(frozen=True)
class HorseNotificationResult:
    """Outcome per recipient class. The owner outcome decides the job's fate."""
    owner: DeliveryOutcome
    trainer: Optional[DeliveryOutcome] = None


# ──────────────────────────────────────────────────────────────
#  Run report
# ──────────────────────────────────────────────────────────────

@dataclass
class ProcessorReport:
    success: bool = True
    duration: float = 0.0                     # seconds, 2 decimals
    processed: int = 0                        # delivery attempts made
    sent: int = 0
    skipped: int = 0
    failed: int = 0                           # jobs that reached FAILED this run
    reclaimed: int = 0                        # stale PROCESSING claims recovered at start
    batches: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
