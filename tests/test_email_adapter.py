"""Tests for the Resend email adapter, using httpx.MockTransport."""
import json
import pytest
import httpx
from tenacity import wait_none

from channels.email_adapter import EmailAdapter
from config.settings import EmailConfig


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(EmailAdapter._post_email.retry, "wait", wait_none())


@pytest.fixture
def config():
    return EmailConfig(api_key="re_test_key", from_email="notifications@ekurim.com.tr",
                       api_base_url="https://api.resend.test")


def adapter_with(config, handler) -> EmailAdapter:
    return EmailAdapter(config, transport=httpx.MockTransport(handler))


class TestEmailAdapter:

    @pytest.mark.asyncio
    async def test_send_success(self, config):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "re_msg_1"})

        adapter = adapter_with(config, handler)
        result = await adapter.send("owner@example.com", "Yeni Yarış Sonucu: Bold Ruler", "<p>hi</p>")
        await adapter.close()

        assert result.success is True
        assert result.message_id == "re_msg_1"
        request = seen[0]
        assert request.url == "https://api.resend.test/emails"
        assert request.headers["Authorization"] == "Bearer re_test_key"
        body = json.loads(request.content)
        assert body["from"] == "notifications@ekurim.com.tr"
        assert body["to"] == ["owner@example.com"]
        assert body["subject"] == "Yeni Yarış Sonucu: Bold Ruler"
        assert "text" not in body

    @pytest.mark.asyncio
    async def test_not_configured_sends_nothing(self):
        calls = []
        adapter = adapter_with(EmailConfig(api_key=""), lambda r: calls.append(r))

        result = await adapter.send("owner@example.com", "s", "<p></p>")

        assert adapter.is_configured is False
        assert result.success is False
        assert result.error == "Email service not configured"
        assert calls == []

    @pytest.mark.asyncio
    async def test_provider_rejection_is_not_retried(self, config):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(422, json={"name": "validation_error", "message": "Invalid `to` field"})

        adapter = adapter_with(config, handler)
        result = await adapter.send("not-an-email", "s", "<p></p>")

        assert result.success is False
        assert result.error == "Invalid `to` field"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_error_retried_then_reported(self, config):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        adapter = adapter_with(config, handler)
        result = await adapter.send("owner@example.com", "s", "<p></p>")

        assert result.success is False
        assert "HTTP 503" in result.error
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_transport_error_recovers_on_retry(self, config):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"id": "re_msg_2"})

        adapter = adapter_with(config, handler)
        result = await adapter.send(["a@example.com", "b@example.com"], "s", "<p></p>", text="plain")

        assert result.success is True
        assert result.message_id == "re_msg_2"
        assert len(calls) == 2
        body = json.loads(calls[-1].content)
        assert body["to"] == ["a@example.com", "b@example.com"]
        assert body["text"] == "plain"

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, config):
        adapter = adapter_with(config, lambda r: httpx.Response(401, text="Unauthorized"))
        result = await adapter.send("owner@example.com", "s", "<p></p>")
        assert result.error == "HTTP 401"
