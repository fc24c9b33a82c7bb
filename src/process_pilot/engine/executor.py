"""Step dispatch.

The :class:`StepExecutor` owns a table from :class:`StepKind` to handler and is
the only place where a step spec meets the code that runs it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from process_pilot.core.models import StepResult
from process_pilot.core.types import StepStatus
from process_pilot.steps import DEFAULT_HANDLERS

if TYPE_CHECKING:
    from collections.abc import Iterable

    from process_pilot.core.context import RunContext
    from process_pilot.core.definition import StepSpec
    from process_pilot.core.protocols import StepHandler
    from process_pilot.core.types import StepKind
    from process_pilot.steps.base import BaseStepHandler, StepServices

__all__ = ["StepExecutor"]

logger = structlog.get_logger(__name__)


class StepExecutor:
    """Dispatch steps to the handler registered for their kind.

    Attributes:
        services: Collaborators shared by the default handlers.
    """

    def __init__(
        self,
        services: StepServices,
        handlers: Iterable[type[BaseStepHandler]] | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            services: Collaborators passed to every handler class.
            handlers: Handler classes to instantiate. Defaults to one built-in
                handler per step kind.
        """
        self.services = services
        self._handlers: dict[StepKind, StepHandler] = {}
        for handler_cls in DEFAULT_HANDLERS if handlers is None else handlers:
            self.register(handler_cls(services))

    def register(self, handler: StepHandler) -> None:
        """Register ``handler`` for its kind, replacing any previous one."""
        self._handlers[handler.kind] = handler

    def handler_for(self, kind: StepKind) -> StepHandler | None:
        """Return the handler registered for ``kind``, if any."""
        return self._handlers.get(kind)

    async def execute(self, step: StepSpec, context: RunContext) -> StepResult:
        """Execute ``step``. Never raises; problems become a failed result.

        Args:
            step: The step spec.
            context: The run context.

        Returns:
            The step result.
        """
        handler = self._handlers.get(step.kind)
        if handler is None:
            return self._failure(step, f"Unknown step type: {step.kind}")
        try:
            return await handler.execute(step, context)
        except Exception as exc:  # noqa: BLE001
            logger.exception("step_handler_crashed", step=step.name, kind=str(step.kind))
            return self._failure(step, str(exc) or type(exc).__name__)

    def _failure(self, step: StepSpec, error: str) -> StepResult:
        return StepResult(
            name=step.name,
            kind=step.kind,
            status=StepStatus.FAILED,
            error=error,
            required=step.required,
            started_at=self.services.clock.now(),
        )
