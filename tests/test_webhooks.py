"""Tests for scheduling.webhooks -- the HTTP executor."""

import asyncio
import time

import httpx
import pytest

from conftest import PRIMARY_URL, RecordingTransport
from scheduling.errors import WebhookStatusError, WebhookTransportError
from scheduling.models import WebhookConfig
from scheduling.webhooks import WebhookExecutor


def _config(**kw) -> WebhookConfig:
    data = {"url": PRIMARY_URL, "method": "POST"}
    data.update(kw)
    return WebhookConfig.model_validate(data)


class TestExecute:
    @pytest.mark.asyncio
    async def test_returns_full_body(self):
        big = "x" * 100_000
        transport = RecordingTransport({PRIMARY_URL: httpx.Response(200, text=big)})
        body = await WebhookExecutor(transport=transport).execute(_config())
        assert body == big

    @pytest.mark.asyncio
    async def test_sends_method_headers_and_body(self):
        transport = RecordingTransport()
        await WebhookExecutor(transport=transport).execute(_config(
            headers={"X-Token": "abc"}, body='{"a": 1}',
        ))
        req = transport.requests[0]
        assert req.method == "POST"
        assert req.headers["X-Token"] == "abc"
        assert req.headers["Content-Type"] == "application/json"
        assert req.content == b'{"a": 1}'

    @pytest.mark.asyncio
    async def test_explicit_content_type_kept(self):
        transport = RecordingTransport()
        await WebhookExecutor(transport=transport).execute(_config(
            headers={"content-type": "text/plain"}, body="hi",
        ))
        assert transport.requests[0].headers["Content-Type"] == "text/plain"

    @pytest.mark.asyncio
    async def test_no_body_no_default_content_type(self):
        transport = RecordingTransport()
        await WebhookExecutor(transport=transport).execute(_config(method="GET"))
        req = transport.requests[0]
        assert req.method == "GET"
        assert "Content-Type" not in req.headers
        assert req.content == b""

    @pytest.mark.asyncio
    async def test_status_error(self):
        transport = RecordingTransport({PRIMARY_URL: httpx.Response(500, text="boom")})
        with pytest.raises(WebhookStatusError) as info:
            await WebhookExecutor(transport=transport).execute(_config())
        assert info.value.status_code == 500
        assert info.value.body == "boom"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        transport = RecordingTransport({PRIMARY_URL: httpx.ConnectError("refused")})
        with pytest.raises(WebhookTransportError):
            await WebhookExecutor(transport=transport).execute(_config())

    @pytest.mark.asyncio
    async def test_non_ascii_header_is_transport_error(self):
        transport = RecordingTransport()
        with pytest.raises(WebhookTransportError):
            await WebhookExecutor(transport=transport).execute(_config(headers={"X-Title": "café"}))
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self):
        async def slow(request):
            await asyncio.sleep(5)
            return httpx.Response(200)

        executor = WebhookExecutor(transport=httpx.MockTransport(slow))
        started = time.monotonic()
        with pytest.raises(WebhookTransportError):
            await executor.execute(_config(timeout=1))
        assert time.monotonic() - started < 3


class TestTimeoutFor:
    def test_default_and_custom(self):
        executor = WebhookExecutor(default_timeout=30)
        assert executor.timeout_for(_config()) == 30
        assert executor.timeout_for(_config(timeout=5)) == 5

    def test_capped_by_deadline(self):
        executor = WebhookExecutor(default_timeout=30)
        assert executor.timeout_for(_config(), deadline=time.monotonic() + 2) <= 2

    @pytest.mark.asyncio
    async def test_passed_deadline_fails_fast(self):
        transport = RecordingTransport()
        with pytest.raises(WebhookTransportError):
            await WebhookExecutor(transport=transport).execute(_config(), deadline=time.monotonic() - 1)
        assert transport.requests == []
