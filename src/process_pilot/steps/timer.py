"""Delay step."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from process_pilot.core.definition import DelayStep
from process_pilot.core.types import StepKind
from process_pilot.steps.base import BaseStepHandler

if TYPE_CHECKING:
    from process_pilot.core.context import RunContext

__all__ = ["DelayHandler"]


class DelayHandler(BaseStepHandler[DelayStep]):
    """Suspend the run for a fixed duration through the injected clock.

    Example:
        >>> step = DelayStep(name="cool_down", delay_ms=30_000)
        >>> await handler.execute(step, context)  # sleeps 30s
    """

    kind: ClassVar[StepKind] = StepKind.DELAY

    async def run(self, step: DelayStep, context: RunContext) -> Any:
        delay_ms = self.services.config.default_delay_ms if step.delay_ms is None else step.delay_ms
        await self.services.clock.sleep(delay_ms)
        return {"delayed": delay_ms}
