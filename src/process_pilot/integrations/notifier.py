"""Notifier that writes alerts to the structured log."""

from __future__ import annotations

import structlog

__all__ = ["LogNotifier"]

logger = structlog.get_logger(__name__)


class LogNotifier:
    """Emit notifications as warning-level log events.

    Useful as the default channel in development and as a fallback when no
    mail transport is configured.
    """

    async def send(self, subject: str, html: str) -> None:
        logger.warning("notification", subject=subject, html=html)
