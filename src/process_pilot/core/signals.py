"""Cooperative cancellation for workflow runs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from process_pilot.exceptions import RunCancelledError

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

__all__ = ["CancellationToken"]


class CancellationToken:
    """Per-run cancellation signal with an optional deadline.

    The step walker checks the token before every step and every parallel
    group. A step that is already executing is never interrupted; the run stops
    at the next boundary instead.

    Attributes:
        deadline: Point in time after which the run counts as cancelled.
    """

    __slots__ = ("_reason", "deadline")

    def __init__(self, deadline: datetime | None = None) -> None:
        self.deadline = deadline
        self._reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        """Request cancellation. The first reason given wins."""
        if self._reason is None:
            self._reason = reason

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested explicitly."""
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        return self._reason

    def expired(self, now: datetime) -> bool:
        """Whether the deadline has passed at ``now``."""
        return self.deadline is not None and now >= self.deadline

    def check(self, run_id: UUID, now: datetime) -> None:
        """Raise if the run has been cancelled or its deadline has passed.

        Raises:
            RunCancelledError: If the run must stop.
        """
        if self._reason is not None:
            raise RunCancelledError(run_id, self._reason)
        if self.expired(now):
            raise RunCancelledError(run_id, f"deadline {self.deadline.isoformat()} exceeded")  # type: ignore[union-attr]
