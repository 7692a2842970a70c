"""
Email Channel Adapter — transactional email through the Resend HTTP API.

Provides:
- One POST /emails per message, bearer-token authenticated
- Bounded retries on transport errors (connect / read failures, 5xx)
- A uniform EmailResult instead of exceptions at the boundary
- A disabled mode when no API key is configured (nothing is sent)
"""
from __future__ import annotations

import structlog
from typing import Any, Optional, Union

import httpx
from tenacity import (
    retry, retry_if_exception_type, stop_after_attempt, wait_exponential,
)

from channels.base import EmailNotConfiguredError, EmailTransportError
from config.settings import EmailConfig, get_settings
from models.schemas import EmailResult

logger = structlog.get_logger()


class EmailAdapter:
    """
    Thin Resend client. Provider-side rejections (4xx, error payloads) are
    returned as failed EmailResults; only transport errors are retried.
    """

    def __init__(self, config: EmailConfig = None, transport: httpx.AsyncBaseTransport = None):
        self.config = config or get_settings().email
        self._transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.config.api_key and self.config.from_email)

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            self.client = httpx.AsyncClient(
                base_url=self.config.api_base_url,
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self.client

    @retry(
        retry=retry_if_exception_type(EmailTransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, max=10),
        reraise=True,
    )
    async def _post_email(self, message: dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.post("/emails", json=message)
        except httpx.TransportError as e:
            raise EmailTransportError(f"Email transport error: {e}") from e
        if response.status_code >= 500:
            raise EmailTransportError(f"Email provider error: HTTP {response.status_code}")
        return response

    async def send(
        self,
        to: Union[str, list[str]],
        subject: str,
        html: str,
        text: str = None,
    ) -> EmailResult:
        if not self.is_configured:
            logger.warning("email_not_configured", reason="RESEND_API_KEY is not set")
            return EmailResult(success=False, error=str(EmailNotConfiguredError()))

        message: dict[str, Any] = {
            "from": self.config.from_email,
            "to": to if isinstance(to, list) else [to],
            "subject": subject,
            "html": html,
        }
        if text:
            message["text"] = text

        try:
            response = await self._post_email(message)
        except EmailTransportError as e:
            logger.error("email_send_failed", to=message["to"], error=str(e))
            return EmailResult(success=False, error=str(e))

        body = self._json_or_empty(response)
        if response.status_code >= 400:
            error = body.get("message") or body.get("error") or f"HTTP {response.status_code}"
            logger.error("email_rejected", to=message["to"], status=response.status_code, error=error)
            return EmailResult(success=False, error=str(error))

        message_id = body.get("id")
        logger.info("email_sent", to=message["to"], subject=subject, message_id=message_id)
        return EmailResult(success=True, message_id=message_id)

    @staticmethod
    def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def close(self):
        if self.client:
            await self.client.aclose()
