"""
Payload building — turns a queued job's loose `data` dict into the typed
payload the sender expects for that notification type.

Keys in `data` are the producer's camelCase names (raceDate, prizeMoney,
gallopDate, ...), captured when the event was enqueued.
"""
from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from models.schemas import (
    HorseDeclaredPayload, HorseRegisteredPayload, NewRacePayload,
    NewTrainingPayload, NotificationJob, NotificationPayload, NotificationType,
)


class PayloadError(Exception):
    """A job's data cannot be turned into a notification payload."""

    def __init__(self, job_id: str, message: str):
        self.job_id = job_id
        super().__init__(message)


def _training_distances(distances: Any) -> str | None:
    # {"400": 25.1, "600": 38.0} → "400, 600"
    if not distances:
        return None
    if isinstance(distances, dict):
        return ", ".join(str(k) for k in distances)
    if isinstance(distances, (list, tuple)):
        return ", ".join(str(d) for d in distances)
    return str(distances)


def _fields_for(notification_type: NotificationType, data: dict[str, Any]) -> dict[str, Any]:
    if notification_type == NotificationType.NEW_RACE:
        return {
            "race_date": data.get("raceDate"),
            "position": data.get("position"),
            "city": data.get("city"),
            "distance": data.get("distance"),
            "prize_money": data.get("prizeMoney"),
        }
    if notification_type == NotificationType.HORSE_REGISTERED:
        return {
            "registration_date": data.get("raceDate"),
            "race_date": data.get("raceDate") or None,
            "city": data.get("city"),
            "distance": data.get("distance"),
        }
    if notification_type == NotificationType.HORSE_DECLARED:
        return {
            "declaration_date": data.get("raceDate"),
            "race_date": data.get("raceDate"),
            "city": data.get("city"),
            "distance": data.get("distance"),
            "jockey_name": data.get("jockeyName"),
        }
    return {
        "training_date": data.get("gallopDate"),
        "racecourse": data.get("racecourse"),
        "distance": _training_distances(data.get("distances")),
    }


_PAYLOAD_MODELS: dict[NotificationType, type[NotificationPayload]] = {
    NotificationType.NEW_RACE: NewRacePayload,
    NotificationType.HORSE_REGISTERED: HorseRegisteredPayload,
    NotificationType.HORSE_DECLARED: HorseDeclaredPayload,
    NotificationType.NEW_TRAINING: NewTrainingPayload,
}


def build_payload(job: NotificationJob) -> tuple[NotificationType, NotificationPayload]:
    """
    Resolve the job's type and build its payload.

    Raises:
        PayloadError: unknown notification type, or data that does not
            satisfy the payload model (e.g. a missing race date).
    """
    try:
        notification_type = NotificationType(job.type)
    except ValueError:
        raise PayloadError(job.id, f"Unknown notification type: {job.type}") from None

    data = job.data or {}
    fields = {
        "horse_id": data.get("horseId") or job.horse_id,
        "horse_name": data.get("horseName") or job.horse_name,
        **_fields_for(notification_type, data),
    }
    try:
        payload = _PAYLOAD_MODELS[notification_type].model_validate(fields)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise PayloadError(job.id, f"Invalid {notification_type.value} payload: {problems}") from e
    return notification_type, payload
