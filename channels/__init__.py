"""Delivery channels for horse notifications."""
from channels.base import (
    ChannelError,
    EmailNotConfiguredError,
    EmailTransportError,
    NotificationSender,
)
from channels.email_adapter import EmailAdapter
from channels.horse_notifier import HorseNotifier
from channels.templates import render_notification

__all__ = [
    "ChannelError", "EmailNotConfiguredError", "EmailTransportError",
    "NotificationSender", "EmailAdapter", "HorseNotifier", "render_notification",
]
