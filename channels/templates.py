"""
Email templates for horse notifications.

Each notification type renders to (subject, html). Copy is Turkish, dates
are formatted the tr-TR way ("12 Mart 2025"), money as "₺1.234,56".
"""
from __future__ import annotations

from datetime import datetime
from html import escape
from typing import Optional

from models.schemas import (
    EmailRecipient, HorseDeclaredPayload, HorseRegisteredPayload,
    NewRacePayload, NewTrainingPayload, NotificationPayload, NotificationType,
)

_MONTHS_TR = [
    "Ocak", "Şubat", "Mart", "Nisan", "Mayıs", "Haziran",
    "Temmuz", "Ağustos", "Eylül", "Ekim", "Kasım", "Aralık",
]

_TITLES = {
    NotificationType.HORSE_REGISTERED: "Yeni At Kaydı",
    NotificationType.HORSE_DECLARED: "Yeni At Deklarasyonu",
    NotificationType.NEW_TRAINING: "Yeni İdman Kaydı",
    NotificationType.NEW_RACE: "Yeni Yarış Sonucu",
}

_INTROS = {
    NotificationType.HORSE_REGISTERED: "için yeni bir kayıt oluşturuldu.",
    NotificationType.HORSE_DECLARED: "için yeni bir deklarasyon yapıldı.",
    NotificationType.NEW_TRAINING: "için yeni bir idman kaydı eklendi.",
    NotificationType.NEW_RACE: "için yeni bir yarış sonucu eklendi.",
}


def format_date(value: datetime) -> str:
    return f"{value.day} {_MONTHS_TR[value.month - 1]} {value.year}"


def format_currency(amount: float) -> str:
    # 1,234.56 → 1.234,56
    grouped = f"{amount:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"₺{grouped}"


def _detail_rows(payload: NotificationPayload) -> list[tuple[str, Optional[str]]]:
    """(label, value) rows; rows with an empty value are dropped by the caller."""
    if isinstance(payload, HorseRegisteredPayload):
        return [
            ("Kayıt Tarihi", format_date(payload.registration_date)),
            ("Yarış Tarihi", format_date(payload.race_date) if payload.race_date else None),
            ("Şehir", payload.city),
            ("Mesafe", f"{payload.distance} m" if payload.distance else None),
        ]
    if isinstance(payload, HorseDeclaredPayload):
        return [
            ("Deklarasyon Tarihi", format_date(payload.declaration_date)),
            ("Yarış Tarihi", format_date(payload.race_date)),
            ("Şehir", payload.city),
            ("Mesafe", f"{payload.distance} m" if payload.distance else None),
            ("Jokey", payload.jockey_name),
        ]
    if isinstance(payload, NewTrainingPayload):
        return [
            ("İdman Tarihi", format_date(payload.training_date)),
            ("Mesafe/Tip", payload.distance),
            ("Hipodrom", payload.racecourse),
        ]
    if isinstance(payload, NewRacePayload):
        return [
            ("Yarış Tarihi", format_date(payload.race_date)),
            ("Sıralama", f"{payload.position}. sıra" if payload.position else None),
            ("Şehir", payload.city),
            ("Mesafe", f"{payload.distance} m" if payload.distance else None),
            ("İkramiye", format_currency(payload.prize_money) if payload.prize_money else None),
        ]
    raise ValueError(f"No template for payload {type(payload).__name__}")


def _base_template(title: str, content: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background-color: #f8f9fa; padding: 20px; border-radius: 8px; margin-bottom: 20px;">
    <h1 style="color: #1a1a1a; margin: 0 0 10px 0; font-size: 24px;">{title}</h1>
  </div>
  <div style="background-color: #ffffff; padding: 20px; border-radius: 8px; border: 1px solid #e0e0e0;">
    {content}
  </div>
  <div style="margin-top: 20px; padding-top: 20px; border-top: 1px solid #e0e0e0; font-size: 12px; color: #666; text-align: center;">
    <p>Bu e-posta Ekurim.com.tr tarafından otomatik olarak gönderilmiştir.</p>
    <p>Bildirim ayarlarınızı değiştirmek için uygulamaya giriş yapabilirsiniz.</p>
  </div>
</body>
</html>"""


def render_notification(
    notification_type: NotificationType,
    payload: NotificationPayload,
    recipient: EmailRecipient,
    app_url: str,
) -> tuple[str, str]:
    """Returns (subject, html) for a horse notification."""
    title = _TITLES[notification_type]
    horse_name = escape(payload.horse_name)

    details = "\n".join(
        f'<p style="margin: 5px 0;"><strong>{label}:</strong> {escape(value)}</p>'
        for label, value in _detail_rows(payload)
        if value
    )
    link = f"{app_url.rstrip('/')}/app/horses/{escape(payload.horse_id)}"
    content = f"""
    <p>Merhaba {escape(recipient.name or 'Değerli Kullanıcı')},</p>
    <p><strong>{horse_name}</strong> adlı atınız {_INTROS[notification_type]}</p>
    <div style="background-color: #f8f9fa; padding: 15px; border-radius: 6px; margin: 20px 0;">
      {details}
    </div>
    <p style="margin-top: 20px;">
      <a href="{link}" style="background-color: #007bff; color: #ffffff; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">
        At Detaylarını Görüntüle
      </a>
    </p>"""

    subject = f"{title}: {payload.horse_name}"
    return subject, _base_template(title, content)
