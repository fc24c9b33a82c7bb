"""Condition evaluation for ``condition`` steps.

An unknown operator, like a missing condition, evaluates true.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

import structlog

from process_pilot.core.definition import Condition

if TYPE_CHECKING:
    from process_pilot.core.context import RunContext
    from process_pilot.core.definition import ConditionStep

__all__ = ["OPERATORS", "evaluate_condition", "select_branch"]

logger = structlog.get_logger(__name__)


def _to_number(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _greater_than(actual: Any, expected: Any) -> bool:
    left, right = _to_number(actual), _to_number(expected)
    return left is not None and right is not None and left > right


def _less_than(actual: Any, expected: Any) -> bool:
    left, right = _to_number(actual), _to_number(expected)
    return left is not None and right is not None and left < right


def _contains(actual: Any, expected: Any) -> bool:
    haystack = "" if actual is None else str(actual)
    return str(expected) in haystack


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": lambda actual, expected: actual == expected,
    "not_equals": lambda actual, expected: actual != expected,
    "contains": _contains,
    "greater_than": _greater_than,
    "less_than": _less_than,
    "exists": lambda actual, _: actual is not None,
}
"""Supported operators keyed by name."""


def evaluate_condition(condition: Condition | Mapping[str, Any] | None, context: RunContext) -> bool:
    """Evaluate a ``{field, operator, value}`` predicate against the run context.

    ``field`` may be a dotted path into nested context values. Numeric
    comparisons with a non-numeric operand are false.

    Args:
        condition: The predicate, its document form, or ``None``.
        context: The run context.

    Returns:
        The outcome. ``None`` conditions and unknown operators yield ``True``.
    """
    if condition is None:
        return True
    if isinstance(condition, Mapping):
        condition = Condition.from_document(condition)

    operator = OPERATORS.get(condition.operator)
    if operator is None:
        logger.warning("unknown_condition_operator", operator=condition.operator, field=condition.field)
        return True
    return operator(context.lookup(condition.field), condition.value)


def select_branch(step: ConditionStep, outcome: bool) -> str:
    """Return the branch label for ``outcome``, honouring custom labels."""
    if outcome:
        return step.true_branch or "true"
    return step.false_branch or "false"
