"""Retry and exponential backoff for failed runs.

A retry keeps the run id, waits ``base * 2 ** (n - 1)`` milliseconds before
attempt ``n`` and re-walks the template skipping every step that already
completed. The controller loops until an attempt succeeds or the template's
retry budget is spent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from process_pilot.core.types import RunStatus
from process_pilot.exceptions import RetryExhaustedError, RunCancelledError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from process_pilot.core.definition import WorkflowTemplate
    from process_pilot.core.models import WorkflowRun
    from process_pilot.core.protocols import Clock
    from process_pilot.core.signals import CancellationToken

__all__ = ["BackoffPolicy", "RetryController"]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff without jitter.

    Attributes:
        base_delay_ms: Delay before the first retry.

    Example:
        >>> policy = BackoffPolicy(base_delay_ms=2000)
        >>> [policy.delay_for(n) for n in (1, 2, 3)]
        [2000, 4000, 8000]
    """

    base_delay_ms: int = 2000

    def delay_for(self, attempt: int) -> int:
        """Return the delay in milliseconds before retry ``attempt`` (1-indexed)."""
        return self.base_delay_ms * 2 ** (attempt - 1)


class RetryController:
    """Decide whether a failed run retries and drive the retry loop."""

    def __init__(self, clock: Clock, policy: BackoffPolicy | None = None) -> None:
        self.clock = clock
        self.policy = policy or BackoffPolicy()

    @staticmethod
    def should_retry(run: WorkflowRun, template: WorkflowTemplate, error: BaseException | None) -> bool:
        """Whether ``run`` is eligible for another attempt.

        Cancelled runs are never retried.
        """
        if isinstance(error, RunCancelledError):
            return False
        return template.retry and run.retries < template.max_retries

    async def retry(
        self,
        run: WorkflowRun,
        template: WorkflowTemplate,
        error: BaseException | None,
        attempt: Callable[[WorkflowRun], Awaitable[BaseException | None]],
        persist: Callable[[WorkflowRun], Awaitable[None]],
        token: CancellationToken | None = None,
    ) -> BaseException | None:
        """Retry ``run`` until it completes or the budget is exhausted.

        Args:
            run: A run in FAILED status.
            template: The template version the run started with.
            error: The error that failed the last attempt.
            attempt: Re-walks the run, returning the aborting error or ``None``.
            persist: Saves the failed attempt before each backoff wait.
            token: Cancellation signal of the run.

        Returns:
            ``None`` if a retry succeeded, otherwise the final error. When at
            least one retry ran and the budget is spent, ``run.error`` is rewritten
            to the retry-exhausted message.
        """
        while self.should_retry(run, template, error):
            await persist(run)
            run.retries += 1
            delay_ms = self.policy.delay_for(run.retries)
            run.transition(RunStatus.RETRYING)
            logger.info(
                "retry_scheduled",
                run_id=str(run.id),
                workflow=run.workflow_name,
                attempt=run.retries,
                max_retries=template.max_retries,
                delay_ms=delay_ms,
            )
            await self.clock.sleep(delay_ms)

            if token is not None and (token.cancelled or token.expired(self.clock.now())):
                error = RunCancelledError(run.id, token.reason or "deadline exceeded")
                run.mark_failed(str(error), self.clock.now())
                return error

            run.transition(RunStatus.RUNNING)
            error = await attempt(run)
            if error is None:
                logger.info("retry_succeeded", run_id=str(run.id), workflow=run.workflow_name, attempt=run.retries)
                return None

        if run.retries > 0 and not isinstance(error, RunCancelledError):
            run.error = str(RetryExhaustedError(template.max_retries, run.error))
        return error
