"""
Channel base — error hierarchy and the sender contract.

Provides:
- ChannelError: structured error hierarchy for delivery transports
- NotificationSender: the interface the queue processor delivers through
"""
from __future__ import annotations

import abc

from models.schemas import HorseNotificationResult, NotificationPayload, NotificationType


# ══════════════════════════════════════════════════════════════
#  ERRORS
# ══════════════════════════════════════════════════════════════

class ChannelError(Exception):
    """Base exception for all channel operations."""

    def __init__(self, message: str, channel: str = "", retryable: bool = False):
        self.channel = channel
        self.retryable = retryable
        super().__init__(message)


class EmailNotConfiguredError(ChannelError):
    def __init__(self):
        super().__init__("Email service not configured", "email", retryable=False)


class EmailTransportError(ChannelError):
    """Network-level failure talking to the email provider."""

    def __init__(self, message: str):
        super().__init__(message, "email", retryable=True)


# ══════════════════════════════════════════════════════════════
#  SENDER CONTRACT
# ══════════════════════════════════════════════════════════════

class NotificationSender(abc.ABC):
    """
    Delivers one horse notification to everyone who should receive it.

    Implementations report the outcome per recipient class instead of
    raising; an exception escaping send_horse_notification is still
    handled by the processor as a failed delivery attempt.
    """

    @abc.abstractmethod
    async def send_horse_notification(
        self,
        notification_type: NotificationType,
        horse_id: str,
        payload: NotificationPayload,
    ) -> HorseNotificationResult:
        ...
