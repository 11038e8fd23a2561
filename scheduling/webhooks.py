"""
scheduling/webhooks.py
----------------------
HookCron – Webhook executor

Sends one HTTP request per `WebhookConfig` and hands back the response body
as text. A status of 400 or above is a failure even though the HTTP exchange
itself completed.

Usage
-----
    from scheduling.webhooks import WebhookExecutor

    executor = WebhookExecutor()
    body = await executor.execute(WebhookConfig(
        url="https://hooks.example.com/notify",
        method="POST",
        headers={"Authorization": "Bearer xyz"},
        body='{"text": "hello"}',
        timeout=10,
    ))
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import httpx

from .errors import WebhookStatusError, WebhookTransportError
from .models import WebhookConfig

logger = logging.getLogger("hookcron.scheduling.webhooks")

DEFAULT_TIMEOUT = 30.0

_SENSITIVE_HEADERS = {"authorization", "proxy-authorization", "x-api-key"}


def _loggable_headers(headers: dict[str, str]) -> dict[str, str]:
    return {
        k: ("***" if k.lower() in _SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


class WebhookExecutor:
    """
    Issues webhook requests with a per-call timeout.

    Parameters
    ----------
    default_timeout : float — seconds, used when a config's timeout is 0
    transport       : httpx.AsyncBaseTransport | None — custom transport (tests, proxies)
    """

    def __init__(
        self,
        default_timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._default_timeout = default_timeout
        self._transport       = transport

    def timeout_for(self, config: WebhookConfig, deadline: Optional[float] = None) -> float:
        """Seconds allowed for *config*, capped by an absolute monotonic *deadline*."""
        timeout = float(config.timeout_seconds) if config.timeout_seconds > 0 else self._default_timeout
        if deadline is not None:
            timeout = min(timeout, deadline - time.monotonic())
        return timeout

    async def execute(self, config: WebhookConfig, deadline: Optional[float] = None) -> str:
        """
        Send the request described by *config* and return the response body.

        Raises WebhookTransportError for network faults and timeouts and
        WebhookStatusError for HTTP statuses >= 400.
        """
        timeout = self.timeout_for(config, deadline)
        if timeout <= 0:
            raise WebhookTransportError(f"deadline already passed for {config.method} {config.url}")

        headers = dict(config.headers)
        content = config.body.encode("utf-8") if config.body else None
        if content is not None and not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = "application/json"

        logger.info("[Webhooks] %s %s (timeout %.1fs)", config.method, config.url, timeout)
        if headers:
            logger.debug("[Webhooks] Headers: %s", _loggable_headers(headers))
        if content is not None:
            logger.debug("[Webhooks] Body: %s", config.body)

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                resp = await asyncio.wait_for(
                    client.request(config.method, config.url, headers=headers, content=content),
                    timeout=timeout,
                )
        except asyncio.TimeoutError as exc:
            raise WebhookTransportError(
                f"{config.method} {config.url} timed out after {timeout:.1f}s"
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            # ValueError covers UnicodeEncodeError from non-ASCII header values
            raise WebhookTransportError(
                f"failed to execute webhook {config.method} {config.url}: {exc!r}"
            ) from exc

        body = resp.text
        logger.info("[Webhooks] %s %s → %d", config.method, config.url, resp.status_code)
        if resp.status_code >= 400:
            raise WebhookStatusError(resp.status_code, body)
        logger.debug("[Webhooks] Response body: %s", body)
        return body
