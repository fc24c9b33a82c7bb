"""Tests for the concrete collaborator adapters."""

from __future__ import annotations

import json

import httpx
import pytest


@pytest.mark.unit
class TestHttpxWebhookClient:
    """Tests for HttpxWebhookClient."""

    async def test_posts_json_payload(self) -> None:
        """Test that POST sends the payload as JSON."""
        from process_pilot.integrations.webhook import HttpxWebhookClient

        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": "abc"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            response = await HttpxWebhookClient(client).call(
                "https://crm.example/hooks", "POST", {"score": 8}, {"X-Token": "secret"}
            )

        assert response.status_code == 201
        assert response.body == {"id": "abc"}
        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"score": 8}
        assert seen[0].headers["X-Token"] == "secret"
        assert seen[0].headers["Content-Type"] == "application/json"

    async def test_get_sends_no_body(self) -> None:
        """Test that GET sends no request body."""
        from process_pilot.integrations.webhook import HttpxWebhookClient

        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="pong")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            response = await HttpxWebhookClient(client).call("https://crm.example/ping", "GET", {"ignored": 1}, {})

        assert seen[0].content == b""
        assert response.body == "pong"

    async def test_error_status_is_returned(self) -> None:
        """Test that an error status is returned, not raised."""
        from process_pilot.integrations.webhook import HttpxWebhookClient

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="oops")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            response = await HttpxWebhookClient(client).call("https://crm.example", "POST", {}, {})

        assert response.to_dict() == {"statusCode": 500, "body": "oops"}

    async def test_transport_error_propagates(self) -> None:
        """Test that transport errors propagate."""
        from process_pilot.integrations.webhook import HttpxWebhookClient

        def handler(request: httpx.Request) -> httpx.Response:
            msg = "refused"
            raise httpx.ConnectError(msg, request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(httpx.ConnectError):
                await HttpxWebhookClient(client).call("https://crm.example", "POST", {}, {})


@pytest.mark.unit
class TestLogNotifier:
    """Tests for LogNotifier."""

    async def test_logs_notification(self) -> None:
        """Test that the log notifier emits a structured event."""
        from structlog.testing import capture_logs

        from process_pilot.integrations.notifier import LogNotifier

        with capture_logs() as logs:
            await LogNotifier().send("WORKFLOW FAILED: sync (3 retries)", "<p>boom</p>")

        assert logs[0]["event"] == "notification"
        assert logs[0]["subject"] == "WORKFLOW FAILED: sync (3 retries)"
        assert logs[0]["log_level"] == "warning"


@pytest.mark.unit
class TestAsyncioClock:
    """Tests for AsyncioClock."""

    def test_now_is_aware_utc(self) -> None:
        """Test that now() is timezone-aware UTC."""
        from datetime import timezone

        from process_pilot.integrations.clock import AsyncioClock

        assert AsyncioClock().now().tzinfo is timezone.utc

    async def test_sleep_zero_returns(self) -> None:
        """Test that a zero sleep returns immediately."""
        from process_pilot.integrations.clock import AsyncioClock

        await AsyncioClock().sleep(0)
        await AsyncioClock().sleep(1)
