"""
Horse Notifier — emails a horse's owner and trainer about a lifecycle event.

Flow per recipient class:
    horse → stablemate (owner) / trainer profile
    → category disabled?  → Skipped
    → no email address?   → Failed
    → render template, send through the email adapter → Delivered / Failed
"""
from __future__ import annotations

import structlog
from typing import Optional

from channels.base import NotificationSender
from channels.email_adapter import EmailAdapter
from channels.templates import render_notification
from config.settings import get_settings
from database.store_base import BaseRecipientDirectory
from models.schemas import (
    Delivered, DeliveryOutcome, EmailRecipient, Failed, HorseNotificationResult,
    NotificationPayload, NotificationType, RecipientProfile, Skipped,
)

logger = structlog.get_logger()


class HorseNotifier(NotificationSender):

    def __init__(
        self,
        directory: BaseRecipientDirectory,
        email: EmailAdapter = None,
        app_url: str = None,
    ):
        self.directory = directory
        self.email = email or EmailAdapter()
        self.app_url = app_url or get_settings().email.app_url

    async def send_horse_notification(
        self,
        notification_type: NotificationType,
        horse_id: str,
        payload: NotificationPayload,
    ) -> HorseNotificationResult:
        horse = await self.directory.get_horse(horse_id)
        if not horse:
            return HorseNotificationResult(owner=Failed("Horse not found"))

        stablemate = await self.directory.get_stablemate(horse.stablemate_id)
        owner = await self._notify(
            notification_type, payload, stablemate,
            missing="Stablemate not found", no_email="Owner email not found",
        )

        trainer: Optional[DeliveryOutcome] = None
        if horse.trainer_id:
            profile = await self.directory.get_trainer(horse.trainer_id)
            trainer = await self._notify(
                notification_type, payload, profile,
                missing="Trainer not found", no_email="Trainer email not found",
            )

        return HorseNotificationResult(owner=owner, trainer=trainer)

    async def _notify(
        self,
        notification_type: NotificationType,
        payload: NotificationPayload,
        profile: Optional[RecipientProfile],
        missing: str,
        no_email: str,
    ) -> DeliveryOutcome:
        if profile is None:
            return Failed(missing)
        if not profile.settings.is_enabled(notification_type):
            logger.debug("notification_disabled",
                         profile_id=profile.id, type=notification_type.value)
            return Skipped()
        if not profile.email:
            return Failed(no_email)

        recipient = EmailRecipient(email=profile.email, name=profile.name)
        subject, html = render_notification(notification_type, payload, recipient, self.app_url)
        result = await self.email.send(to=recipient.email, subject=subject, html=html)
        if result.success:
            return Delivered(message_id=result.message_id or "")
        return Failed(result.error or "Failed to send notification")
