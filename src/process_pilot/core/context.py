"""Run context and ``{{placeholder}}`` interpolation.

The :class:`RunContext` is the key/value store shared by every step of a run.
Steps only ever add or overwrite keys.
"""

from __future__ import annotations

import copy
import json
import re
from collections.abc import Iterator, Mapping
from typing import Any

__all__ = ["PLACEHOLDER_PATTERN", "RunContext", "resolve_fields", "resolve_template"]

PLACEHOLDER_PATTERN = re.compile(r"\{\{([\w.]+)\}\}")
"""Matches ``{{key}}`` and ``{{key.nested}}`` placeholders."""

_MISSING = object()


class RunContext:
    """Mutable key/value store shared by the steps of one run.

    Example:
        >>> ctx = RunContext({"lead": {"email": "a@b.ch"}})
        >>> ctx.set("score", 7)
        >>> ctx.lookup("lead.email")
        'a@b.ch'
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key`` or ``default``."""
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, overwriting any previous value."""
        self._data[key] = value

    def lookup(self, path: str, default: Any = None) -> Any:
        """Resolve a dotted path through nested mappings and sequences.

        Args:
            path: A key such as ``"score"`` or ``"lead.address.city"``. Numeric
                segments index into lists.
            default: Value returned when any segment is missing.

        Returns:
            The resolved value or ``default``.
        """
        value = _resolve_path(self._data, path)
        return default if value is _MISSING else value

    def to_dict(self) -> dict[str, Any]:
        """Return a deep copy of the stored values."""
        return copy.deepcopy(self._data)

    def __deepcopy__(self, memo: dict[int, Any]) -> RunContext:
        return RunContext(copy.deepcopy(self._data, memo))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RunContext):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"RunContext({self._data!r})"


def _resolve_path(data: Mapping[str, Any], path: str) -> Any:
    if path in data:
        return data[path]
    current: Any = data
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return _MISSING
            current = current[segment]
        elif isinstance(current, (list, tuple)) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return _MISSING
    return current


def _stringify(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def resolve_template(template: Any, context: RunContext) -> Any:
    """Substitute ``{{key}}`` placeholders in a string.

    Unknown keys and ``None`` values leave the placeholder untouched. Anything
    that is not a string is returned unchanged.

    Args:
        template: The value to interpolate.
        context: The run context supplying the values.

    Returns:
        The interpolated string, or ``template`` itself when it is not a string.
    """
    if not isinstance(template, str) or "{{" not in template:
        return template

    def replace(match: re.Match[str]) -> str:
        value = context.lookup(match.group(1))
        return match.group(0) if value is None else _stringify(value)

    return PLACEHOLDER_PATTERN.sub(replace, template)


def resolve_fields(fields: Any, context: RunContext) -> Any:
    """Interpolate every string inside a (possibly nested) field structure.

    A string consisting of exactly one placeholder receives the raw context
    value, so ``{"lead": "{{lead}}"}`` passes a mapping through intact.

    Args:
        fields: A mapping, list or scalar. ``None`` becomes an empty mapping.
        context: The run context supplying the values.

    Returns:
        A new structure with placeholders resolved.
    """
    if fields is None:
        return {}
    return _resolve_value(fields, context)


def _resolve_value(value: Any, context: RunContext) -> Any:
    if isinstance(value, Mapping):
        return {key: _resolve_value(item, context) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_resolve_value(item, context) for item in value]
    if isinstance(value, str):
        whole = PLACEHOLDER_PATTERN.fullmatch(value)
        if whole is not None:
            resolved = context.lookup(whole.group(1))
            return value if resolved is None else resolved
        return resolve_template(value, context)
    return value
