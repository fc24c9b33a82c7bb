"""Notification step."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from process_pilot.core.context import resolve_template
from process_pilot.core.definition import NotifyStep
from process_pilot.core.types import StepKind
from process_pilot.steps.base import BaseStepHandler

if TYPE_CHECKING:
    from process_pilot.core.context import RunContext

__all__ = ["NotifyHandler"]


class NotifyHandler(BaseStepHandler[NotifyStep]):
    kind: ClassVar[StepKind] = StepKind.NOTIFY

    async def run(self, step: NotifyStep, context: RunContext) -> Any:
        notifier = self.services.require("notifier")
        subject = resolve_template(step.subject, context)
        await notifier.send(subject, resolve_template(step.html, context))
        return {"sent": True, "subject": subject}
