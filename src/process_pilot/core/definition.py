"""Workflow template definitions.

A template is an ordered tree of typed step specs. Each step kind is its own
frozen dataclass carrying only the parameters that kind understands; the
:data:`STEP_TYPES` table maps a :class:`~process_pilot.core.types.StepKind` to
its spec class and is what the document parser dispatches on.

Template documents use the camelCase shape::

    {
        "version": 3,
        "retry": true,
        "maxRetries": 2,
        "steps": [
            {"name": "leads", "kind": "fetch_records", "table": "Leads", "contextKey": "leads"},
            {"name": "score", "kind": "ai_classify", "prompt": "Score {{leads}}", "contextKey": "score"},
            {"name": "alert", "kind": "notify", "subject": "New lead", "html": "{{score}}", "required": false},
        ],
    }
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Final

from process_pilot.core.types import LATEST, StepKind
from process_pilot.exceptions import TemplateValidationError

if TYPE_CHECKING:
    from datetime import datetime

__all__ = [
    "DEFAULT_MAX_RETRIES",
    "STEP_TYPES",
    "AiClassifyStep",
    "AiGenerateStep",
    "Condition",
    "ConditionStep",
    "CreateRecordStep",
    "DelayStep",
    "FetchRecordsStep",
    "NotifyStep",
    "StepSpec",
    "UpdateRecordStep",
    "WebhookStep",
    "WorkflowTemplate",
    "parse_delay",
    "parse_step",
    "version_number",
]

DEFAULT_MAX_RETRIES: Final = 3
WEBHOOK_METHODS: Final = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$")
_DURATION_FACTORS = {"ms": 1, "s": 1_000, "m": 60_000, "h": 3_600_000, "d": 86_400_000}


def parse_delay(value: Any) -> int:
    """Convert a delay given as milliseconds or a duration string to milliseconds.

    Args:
        value: An int/float in milliseconds, or a string such as ``"500"``,
            ``"250ms"``, ``"30s"``, ``"5m"``, ``"1h"`` or ``"1d"``.

    Returns:
        The delay in whole milliseconds.

    Raises:
        ValueError: If the value cannot be interpreted or is negative.
    """
    if isinstance(value, bool):
        msg = f"Invalid delay: {value!r}"
        raise ValueError(msg)
    if isinstance(value, (int, float)):
        if value < 0:
            msg = f"Delay must not be negative: {value!r}"
            raise ValueError(msg)
        return int(value)
    if isinstance(value, str):
        match = _DURATION_PATTERN.match(value)
        if match:
            amount, unit = match.groups()
            return int(float(amount) * _DURATION_FACTORS[unit or "ms"])
    msg = f"Invalid delay: {value!r}"
    raise ValueError(msg)


def version_number(version: int | str | None) -> int | None:
    """Normalize a version reference.

    Args:
        version: ``None``, ``"latest"``, a positive int or its string form.

    Returns:
        ``None`` for the latest document, otherwise the version number.

    Raises:
        ValueError: If the reference is neither latest nor a positive number.
    """
    if version is None or version == LATEST:
        return None
    if isinstance(version, bool):
        msg = f"Invalid template version: {version!r}"
        raise ValueError(msg)
    if isinstance(version, int):
        number = version
    elif isinstance(version, str) and version.strip().lstrip("v").isdigit():
        number = int(version.strip().lstrip("v"))
    else:
        msg = f"Invalid template version: {version!r}"
        raise ValueError(msg)
    if number < 1:
        msg = f"Invalid template version: {version!r}"
        raise ValueError(msg)
    return number


def _document_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _document_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_document_value(item) for item in value]
    return value


@dataclass(frozen=True, kw_only=True)
class StepSpec:
    """Fields shared by every step kind.

    Attributes:
        name: Step name, unique across the whole template tree.
        required: Whether a failure aborts the run.
        parallel: Whether the step joins a fan-out group with its parallel neighbours.
        context_key: Context key the step's data is written to on success.
    """

    kind: ClassVar[StepKind]
    document_fields: ClassVar[dict[str, str]] = {}
    """Maps dataclass attribute names to their camelCase document keys."""
    required_fields: ClassVar[tuple[str, ...]] = ()

    name: str
    required: bool = True
    parallel: bool = False
    context_key: str | None = None

    @classmethod
    def parse_fields(cls, document: Mapping[str, Any], path: str) -> dict[str, Any]:
        """Extract the kind-specific keyword arguments from a step document."""
        return {attr: document[key] for attr, key in cls.document_fields.items() if key in document}

    def branches_of(self) -> Mapping[str, tuple[StepSpec, ...]]:
        """Nested step lists keyed by branch label. Empty for non-condition steps."""
        return {}

    def to_document(self) -> dict[str, Any]:
        """Serialize the step back into its document form."""
        document: dict[str, Any] = {"name": self.name, "kind": str(self.kind)}
        if not self.required:
            document["required"] = False
        if self.parallel:
            document["parallel"] = True
        if self.context_key:
            document["contextKey"] = self.context_key
        for attr, key in self.document_fields.items():
            value = getattr(self, attr)
            if value is not None:
                document[key] = _document_value(value)
        return document


@dataclass(frozen=True, kw_only=True)
class FetchRecordsStep(StepSpec):
    """Query ``table`` of the record store with an optional filter expression."""

    kind: ClassVar[StepKind] = StepKind.FETCH_RECORDS
    document_fields: ClassVar[dict[str, str]] = {"table": "table", "filter": "filter"}
    required_fields: ClassVar[tuple[str, ...]] = ("table",)

    table: str
    filter: str = ""


@dataclass(frozen=True, kw_only=True)
class CreateRecordStep(StepSpec):
    """Create a record in ``table`` from interpolated ``fields``."""

    kind: ClassVar[StepKind] = StepKind.CREATE_RECORD
    document_fields: ClassVar[dict[str, str]] = {"table": "table", "fields": "fields"}
    required_fields: ClassVar[tuple[str, ...]] = ("table",)

    table: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class UpdateRecordStep(StepSpec):
    """Update a record. Without ``record_id`` the context's ``recordId`` is used."""

    kind: ClassVar[StepKind] = StepKind.UPDATE_RECORD
    document_fields: ClassVar[dict[str, str]] = {"table": "table", "record_id": "recordId", "fields": "fields"}
    required_fields: ClassVar[tuple[str, ...]] = ("table",)

    table: str
    record_id: str | None = None
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class AiClassifyStep(StepSpec):
    """Ask the text generator for a structured (JSON) answer."""

    kind: ClassVar[StepKind] = StepKind.AI_CLASSIFY
    document_fields: ClassVar[dict[str, str]] = {"prompt": "prompt", "model": "model", "max_tokens": "maxTokens"}
    required_fields: ClassVar[tuple[str, ...]] = ("prompt",)

    prompt: str
    model: str | None = None
    max_tokens: int | None = None


@dataclass(frozen=True, kw_only=True)
class AiGenerateStep(StepSpec):
    """Ask the text generator for free text."""

    kind: ClassVar[StepKind] = StepKind.AI_GENERATE
    document_fields: ClassVar[dict[str, str]] = {"prompt": "prompt", "model": "model", "max_tokens": "maxTokens"}
    required_fields: ClassVar[tuple[str, ...]] = ("prompt",)

    prompt: str
    model: str | None = None
    max_tokens: int | None = None


@dataclass(frozen=True)
class Condition:
    """A ``{field, operator, value}`` predicate over the run context."""

    field: str
    operator: str
    value: Any = None

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Condition:
        return cls(
            field=str(document.get("field", "")),
            operator=str(document.get("operator", "")),
            value=document.get("value"),
        )

    def to_document(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}


@dataclass(frozen=True, kw_only=True)
class ConditionStep(StepSpec):
    """Evaluate a condition and run the step list bound to the selected label.

    Attributes:
        condition: The predicate. ``None`` always evaluates true.
        branches: Step lists keyed by branch label.
        true_branch: Label used instead of ``"true"``.
        false_branch: Label used instead of ``"false"``.
    """

    kind: ClassVar[StepKind] = StepKind.CONDITION

    condition: Condition | None = None
    branches: Mapping[str, tuple[StepSpec, ...]] = field(default_factory=dict)
    true_branch: str | None = None
    false_branch: str | None = None

    @classmethod
    def parse_fields(cls, document: Mapping[str, Any], path: str) -> dict[str, Any]:
        condition = document.get("condition")
        if condition is not None and not isinstance(condition, Mapping):
            raise TemplateValidationError([f"{path}: condition must be a mapping"])
        raw_branches = document.get("branches") or {}
        if not isinstance(raw_branches, Mapping):
            raise TemplateValidationError([f"{path}: branches must be a mapping of label to step list"])
        branches: dict[str, tuple[StepSpec, ...]] = {}
        for label, steps in raw_branches.items():
            branches[str(label)] = _parse_steps(steps, f"{path}.branches.{label}")
        return {
            "condition": Condition.from_document(condition) if condition is not None else None,
            "branches": branches,
            "true_branch": document.get("trueBranch"),
            "false_branch": document.get("falseBranch"),
        }

    def branches_of(self) -> Mapping[str, tuple[StepSpec, ...]]:
        return self.branches

    def to_document(self) -> dict[str, Any]:
        document = super().to_document()
        if self.condition is not None:
            document["condition"] = self.condition.to_document()
        if self.branches:
            document["branches"] = {
                label: [step.to_document() for step in steps] for label, steps in self.branches.items()
            }
        if self.true_branch:
            document["trueBranch"] = self.true_branch
        if self.false_branch:
            document["falseBranch"] = self.false_branch
        return document


@dataclass(frozen=True, kw_only=True)
class WebhookStep(StepSpec):
    """Call an HTTP endpoint with an interpolated JSON payload."""

    kind: ClassVar[StepKind] = StepKind.WEBHOOK
    document_fields: ClassVar[dict[str, str]] = {
        "url": "url",
        "method": "method",
        "payload": "payload",
        "headers": "headers",
    }
    required_fields: ClassVar[tuple[str, ...]] = ("url",)

    url: str
    method: str = "POST"
    payload: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class NotifyStep(StepSpec):
    """Send a notification through the notifier."""

    kind: ClassVar[StepKind] = StepKind.NOTIFY
    document_fields: ClassVar[dict[str, str]] = {"subject": "subject", "html": "html"}
    required_fields: ClassVar[tuple[str, ...]] = ("subject",)

    subject: str
    html: str = ""


@dataclass(frozen=True, kw_only=True)
class DelayStep(StepSpec):
    """Suspend the run for ``delay_ms`` milliseconds.

    ``None`` means the runner's configured default delay.
    """

    kind: ClassVar[StepKind] = StepKind.DELAY
    document_fields: ClassVar[dict[str, str]] = {"delay_ms": "delayMs"}

    delay_ms: int | None = None

    @classmethod
    def parse_fields(cls, document: Mapping[str, Any], path: str) -> dict[str, Any]:
        raw = document.get("delayMs", document.get("delay"))
        if raw is None:
            return {}
        try:
            return {"delay_ms": parse_delay(raw)}
        except ValueError as exc:
            raise TemplateValidationError([f"{path}: {exc}"]) from exc


STEP_TYPES: dict[StepKind, type[StepSpec]] = {
    StepKind.FETCH_RECORDS: FetchRecordsStep,
    StepKind.CREATE_RECORD: CreateRecordStep,
    StepKind.UPDATE_RECORD: UpdateRecordStep,
    StepKind.AI_CLASSIFY: AiClassifyStep,
    StepKind.AI_GENERATE: AiGenerateStep,
    StepKind.CONDITION: ConditionStep,
    StepKind.WEBHOOK: WebhookStep,
    StepKind.NOTIFY: NotifyStep,
    StepKind.DELAY: DelayStep,
}
"""Spec class for every step kind."""


def parse_step(document: Mapping[str, Any], path: str = "steps") -> StepSpec:
    """Parse a single step document.

    ``type`` is accepted as an alias of ``kind``. A step is required unless it
    declares ``"required": false``.

    Args:
        document: The step document.
        path: Location of the step, used in error messages.

    Returns:
        The typed step spec.

    Raises:
        TemplateValidationError: If the document is malformed.
    """
    if not isinstance(document, Mapping):
        raise TemplateValidationError([f"{path}: step must be a mapping"])
    name = document.get("name")
    if not isinstance(name, str) or not name:
        raise TemplateValidationError([f"{path}: step name is required"])
    raw_kind = document.get("kind", document.get("type"))
    try:
        spec_cls = STEP_TYPES[StepKind(raw_kind)]
    except ValueError:
        raise TemplateValidationError([f"{path} ({name}): unknown step kind {raw_kind!r}"]) from None

    missing = [
        spec_cls.document_fields[attr]
        for attr in spec_cls.required_fields
        if document.get(spec_cls.document_fields[attr]) in (None, "")
    ]
    if missing:
        raise TemplateValidationError([f"{path} ({name}): missing {', '.join(missing)}"])

    return spec_cls(
        name=name,
        required=document.get("required", True) is not False,
        parallel=bool(document.get("parallel", False)),
        context_key=document.get("contextKey") or None,
        **spec_cls.parse_fields(document, f"{path} ({name})"),
    )


def _parse_steps(documents: Any, path: str) -> tuple[StepSpec, ...]:
    if not isinstance(documents, (list, tuple)):
        raise TemplateValidationError([f"{path}: expected a list of steps"])
    return tuple(parse_step(document, f"{path}[{index}]") for index, document in enumerate(documents))


@dataclass(frozen=True)
class WorkflowTemplate:
    """An immutable, versioned workflow template.

    Attributes:
        name: Template name.
        steps: Top-level step list.
        version: Numbered version or ``"latest"``.
        retry: Whether failed runs are retried.
        max_retries: Retry budget when ``retry`` is set.
        description: Optional human readable description.
        created_at: When this version was stored, if known.

    Example:
        >>> template = WorkflowTemplate.from_document(
        ...     "billing-check",
        ...     {"steps": [{"name": "wait", "kind": "delay", "delay": "5s"}]},
        ... )
        >>> template.steps[0].delay_ms
        5000
    """

    name: str
    steps: tuple[StepSpec, ...]
    version: int | str = LATEST
    retry: bool = False
    max_retries: int = DEFAULT_MAX_RETRIES
    description: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_document(
        cls,
        name: str,
        document: Mapping[str, Any],
        *,
        version: int | str | None = None,
        created_at: datetime | None = None,
        validate: bool = True,
    ) -> WorkflowTemplate:
        """Build a template from its document form.

        Args:
            name: Template name.
            document: The template document.
            version: Version to assign. Defaults to the document's ``version``
                key, then to ``"latest"``.
            created_at: Storage timestamp to attach.
            validate: Run :meth:`validate` and raise on problems.

        Returns:
            The parsed template.

        Raises:
            TemplateValidationError: If the document is malformed or invalid.
        """
        if not isinstance(document, Mapping):
            raise TemplateValidationError(["template document must be a mapping"])
        max_retries = document.get("maxRetries", DEFAULT_MAX_RETRIES)
        if not isinstance(max_retries, int) or isinstance(max_retries, bool):
            raise TemplateValidationError([f"maxRetries must be an integer, got {max_retries!r}"])
        template = cls(
            name=name,
            steps=_parse_steps(document.get("steps", []), "steps"),
            version=version if version is not None else document.get("version", LATEST),
            retry=bool(document.get("retry", False)),
            max_retries=max_retries,
            description=document.get("description"),
            created_at=created_at,
        )
        if validate:
            errors = template.validate()
            if errors:
                raise TemplateValidationError(errors)
        return template

    def to_document(self) -> dict[str, Any]:
        """Serialize the template to its document form."""
        document: dict[str, Any] = {
            "version": self.version,
            "retry": self.retry,
            "maxRetries": self.max_retries,
            "steps": [step.to_document() for step in self.steps],
        }
        if self.description:
            document["description"] = self.description
        return document

    def iter_steps(self) -> Iterator[StepSpec]:
        """Yield every step of the tree, depth first in declared order."""
        stack: list[Iterator[StepSpec]] = [iter(self.steps)]
        while stack:
            step = next(stack[-1], None)
            if step is None:
                stack.pop()
                continue
            yield step
            for branch in step.branches_of().values():
                stack.append(iter(branch))

    @property
    def step_count(self) -> int:
        """Number of steps in the whole tree."""
        return sum(1 for _ in self.iter_steps())

    def validate(self) -> list[str]:
        """Check the template for structural problems.

        Returns:
            A list of problems; empty when the template is valid.
        """
        errors: list[str] = []
        if self.max_retries < 0:
            errors.append("maxRetries must not be negative")

        seen: set[str] = set()
        for step in self.iter_steps():
            if step.name in seen:
                errors.append(f"Duplicate step name '{step.name}'")
            seen.add(step.name)
            if isinstance(step, ConditionStep) and step.parallel:
                errors.append(f"Condition step '{step.name}' cannot be parallel")
            if isinstance(step, WebhookStep) and step.method.upper() not in WEBHOOK_METHODS:
                errors.append(f"Webhook step '{step.name}' uses unsupported method '{step.method}'")
            if isinstance(step, DelayStep) and step.delay_ms is not None and step.delay_ms < 0:
                errors.append(f"Delay step '{step.name}' has a negative delay")
        return errors

    def with_version(self, version: int | str, created_at: datetime | None = None) -> WorkflowTemplate:
        """Return a copy of this template labelled with another version."""
        return dataclasses.replace(self, version=version, created_at=created_at)
