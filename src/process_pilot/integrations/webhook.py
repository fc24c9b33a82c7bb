"""Webhook client built on httpx."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog

from process_pilot.core.models import WebhookResponse

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = ["HttpxWebhookClient"]

logger = structlog.get_logger(__name__)


class HttpxWebhookClient:
    """Send webhook payloads as JSON with :class:`httpx.AsyncClient`.

    The response body is JSON-decoded when possible and returned as text
    otherwise. Transport errors propagate and fail the step.

    Args:
        client: Shared client to use. When omitted a client is created per call.
        timeout: Timeout in seconds for clients created per call.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, *, timeout: float = 30.0) -> None:
        self._client = client
        self.timeout = timeout

    async def call(
        self,
        url: str,
        method: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> WebhookResponse:
        request_headers = {"Content-Type": "application/json", **headers}
        if self._client is not None:
            response = await self._send(self._client, url, method, payload, request_headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await self._send(client, url, method, payload, request_headers)

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        logger.debug("webhook_called", url=url, method=method, status_code=response.status_code)
        return WebhookResponse(status_code=response.status_code, body=body)

    @staticmethod
    async def _send(
        client: httpx.AsyncClient,
        url: str,
        method: str,
        payload: Mapping[str, Any],
        headers: dict[str, str],
    ) -> httpx.Response:
        if method.upper() == "GET":
            return await client.request(method, url, headers=headers)
        return await client.request(method, url, json=dict(payload), headers=headers)
