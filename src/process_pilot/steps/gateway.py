"""Condition step: the decision point of a template."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from process_pilot.core.conditions import evaluate_condition, select_branch
from process_pilot.core.definition import ConditionStep
from process_pilot.core.types import StepKind
from process_pilot.steps.base import BaseStepHandler

if TYPE_CHECKING:
    from process_pilot.core.context import RunContext

__all__ = ["ConditionHandler"]


class ConditionHandler(BaseStepHandler[ConditionStep]):
    """Evaluate the step's condition and report the selected branch label.

    The handler only decides; the step walker executes the branch.

    Example:
        >>> step = ConditionStep(
        ...     name="hot_lead",
        ...     condition=Condition(field="score", operator="greater_than", value=7),
        ...     true_branch="hot",
        ... )
        >>> result = await handler.execute(step, RunContext({"score": 9}))
        >>> result.branch
        'hot'
    """

    kind: ClassVar[StepKind] = StepKind.CONDITION

    async def run(self, step: ConditionStep, context: RunContext) -> Any:
        return evaluate_condition(step.condition, context)

    def branch_for(self, step: ConditionStep, data: Any) -> str | None:
        return select_branch(step, bool(data))
