"""AI text generation steps."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from process_pilot.core.context import resolve_template
from process_pilot.core.definition import AiClassifyStep, AiGenerateStep
from process_pilot.core.types import StepKind
from process_pilot.steps.base import BaseStepHandler

if TYPE_CHECKING:
    from process_pilot.core.context import RunContext

__all__ = ["AiClassifyHandler", "AiGenerateHandler"]


class AiClassifyHandler(BaseStepHandler[AiClassifyStep]):
    """Ask for a structured answer, e.g. a lead score or a category."""

    kind: ClassVar[StepKind] = StepKind.AI_CLASSIFY

    async def run(self, step: AiClassifyStep, context: RunContext) -> Any:
        generator = self.services.require("text_generator")
        config = self.services.config
        return await generator.generate_json(
            resolve_template(step.prompt, context),
            model=step.model or config.classify_model,
            max_tokens=step.max_tokens or config.classify_max_tokens,
        )


class AiGenerateHandler(BaseStepHandler[AiGenerateStep]):
    """Ask for free text, e.g. a follow-up e-mail draft."""

    kind: ClassVar[StepKind] = StepKind.AI_GENERATE

    async def run(self, step: AiGenerateStep, context: RunContext) -> Any:
        generator = self.services.require("text_generator")
        config = self.services.config
        return await generator.generate_text(
            resolve_template(step.prompt, context),
            model=step.model or config.generate_model,
            max_tokens=step.max_tokens or config.generate_max_tokens,
        )
