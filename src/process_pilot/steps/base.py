"""Base step handler for process-pilot."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

import structlog

from process_pilot.core.definition import StepSpec
from process_pilot.core.models import StepResult
from process_pilot.core.types import StepStatus

if TYPE_CHECKING:
    from process_pilot.config import RunnerConfig
    from process_pilot.core.context import RunContext
    from process_pilot.core.protocols import Clock, Notifier, RecordStore, TextGenerator, WebhookClient
    from process_pilot.core.types import StepKind

__all__ = ["BaseStepHandler", "StepServices"]

logger = structlog.get_logger(__name__)

SpecT = TypeVar("SpecT", bound=StepSpec)


@dataclass
class StepServices:
    """Collaborators and settings handed to every step handler.

    Attributes:
        clock: Time source used for delays and timestamps.
        config: Runner configuration (model names, token budgets, default delay).
        record_store: Backend for the record steps.
        text_generator: Backend for the AI steps.
        notifier: Channel for ``notify`` steps.
        webhook_client: HTTP caller for ``webhook`` steps.
    """

    clock: Clock
    config: RunnerConfig
    record_store: RecordStore | None = None
    text_generator: TextGenerator | None = None
    notifier: Notifier | None = None
    webhook_client: WebhookClient | None = None

    def require(self, attribute: str) -> Any:
        """Return the named collaborator or raise if it is not configured.

        Raises:
            RuntimeError: If the collaborator is missing.
        """
        value = getattr(self, attribute)
        if value is None:
            msg = f"No {attribute.replace('_', ' ')} configured"
            raise RuntimeError(msg)
        return value


class BaseStepHandler(Generic[SpecT]):
    """Common behaviour of all step handlers.

    :meth:`execute` times the call, turns any exception raised by :meth:`run`
    into a failed :class:`StepResult` and, on success, writes the produced data
    into the run context under the step's ``context_key``. Subclasses implement
    :meth:`run` and, for branching steps, :meth:`branch_for`.
    """

    kind: ClassVar[StepKind]

    def __init__(self, services: StepServices) -> None:
        self.services = services

    async def run(self, step: SpecT, context: RunContext) -> Any:
        """Perform the step's work and return its data.

        Raises:
            NotImplementedError: Must be implemented by subclasses.
        """
        msg = f"{type(self).__name__} must implement run()"
        raise NotImplementedError(msg)

    def branch_for(self, step: SpecT, data: Any) -> str | None:
        """Return the branch label selected by ``data``. Only condition steps branch."""
        return None

    async def execute(self, step: SpecT, context: RunContext) -> StepResult:
        """Run ``step`` and report the outcome without raising.

        Args:
            step: The step spec.
            context: The run context.

        Returns:
            A completed or failed step result.
        """
        started_at = self.services.clock.now()
        start = time.perf_counter()
        try:
            data = await self.run(step, context)
            branch = self.branch_for(step, data)
        except Exception as exc:  # noqa: BLE001
            duration_ms = int((time.perf_counter() - start) * 1000)
            error = str(exc) or type(exc).__name__
            logger.warning("step_failed", step=step.name, kind=str(step.kind), error=error, duration_ms=duration_ms)
            return StepResult(
                name=step.name,
                kind=step.kind,
                status=StepStatus.FAILED,
                error=error,
                duration_ms=duration_ms,
                required=step.required,
                started_at=started_at,
            )

        duration_ms = int((time.perf_counter() - start) * 1000)
        if step.context_key:
            context.set(step.context_key, data)
        logger.info("step_completed", step=step.name, kind=str(step.kind), duration_ms=duration_ms)
        return StepResult(
            name=step.name,
            kind=step.kind,
            status=StepStatus.COMPLETED,
            data=data,
            duration_ms=duration_ms,
            branch=branch,
            required=step.required,
            started_at=started_at,
        )
