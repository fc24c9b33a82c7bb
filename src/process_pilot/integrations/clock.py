"""Real-time clock backed by asyncio."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

__all__ = ["AsyncioClock"]


class AsyncioClock:
    """Clock that sleeps with :func:`asyncio.sleep` and reads the system time."""

    async def sleep(self, duration_ms: int) -> None:
        if duration_ms > 0:
            await asyncio.sleep(duration_ms / 1000)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
