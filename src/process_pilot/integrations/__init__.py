"""Concrete collaborator adapters."""

from __future__ import annotations

from process_pilot.integrations.clock import AsyncioClock
from process_pilot.integrations.notifier import LogNotifier
from process_pilot.integrations.webhook import HttpxWebhookClient

__all__ = ["AsyncioClock", "HttpxWebhookClient", "LogNotifier"]
