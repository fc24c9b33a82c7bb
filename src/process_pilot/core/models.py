"""Workflow run data models.

This module defines the dataclasses describing a workflow run, the results of
its steps and the error records written for failed or stuck runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from process_pilot.core.context import RunContext
from process_pilot.core.types import ErrorKind, RunStatus, StepKind, StepStatus
from process_pilot.exceptions import InvalidTransitionError, RunAlreadyFinalizedError

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ErrorRecord",
    "StepResult",
    "TemplateVersionInfo",
    "WebhookResponse",
    "WorkflowRun",
    "utcnow",
]

ALLOWED_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.RUNNING, RunStatus.FAILED}),
    RunStatus.RUNNING: frozenset({RunStatus.COMPLETED, RunStatus.FAILED}),
    RunStatus.RETRYING: frozenset({RunStatus.RUNNING, RunStatus.FAILED}),
    RunStatus.FAILED: frozenset({RunStatus.RETRYING}),
    RunStatus.COMPLETED: frozenset(),
}
"""Status graph a run may move along."""


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass
class StepResult:
    """Outcome of executing one step.

    Attributes:
        name: Name of the step.
        kind: Kind of the step.
        status: Whether the step completed or failed.
        data: Value produced by the step handler.
        error: Error message if the step failed.
        duration_ms: Wall time spent in the handler.
        branch: Selected branch label (condition steps only).
        required: Whether a failure of this step aborts the run.
        started_at: When the handler was invoked.
    """

    name: str
    kind: StepKind
    status: StepStatus
    data: Any = None
    error: str | None = None
    duration_ms: int = 0
    branch: str | None = None
    required: bool = True
    started_at: datetime = field(default_factory=utcnow)

    @property
    def succeeded(self) -> bool:
        """Whether the step completed."""
        return self.status == StepStatus.COMPLETED


@dataclass
class WorkflowRun:
    """One logical execution of a workflow template, retries included.

    The run is mutated in place by the runner and the retry controller until it
    is finalized; after that every status change raises
    :class:`~process_pilot.exceptions.RunAlreadyFinalizedError`.

    Attributes:
        workflow_name: Name of the template being executed.
        trigger: Label of whatever started the run (``"cron"``, ``"replay:<id>"`` ...).
        id: Unique run identifier, stable across retries.
        version: Template version resolved when the run started.
        status: Current lifecycle status.
        context: Key/value store shared by all steps.
        input: Snapshot of the context the trigger supplied.
        steps: Append-only execution log, retry attempts included.
        retries: Number of retry attempts made so far.
        started_at: When the run was created.
        completed_at: When the latest attempt reached a terminal status.
        duration_ms: Milliseconds between ``started_at`` and ``completed_at``.
        error: Message of the error that aborted the latest attempt.
        finalized: Whether the run has reached its final outcome.
    """

    workflow_name: str
    trigger: str
    id: UUID = field(default_factory=uuid4)
    version: int | str | None = None
    status: RunStatus = RunStatus.PENDING
    context: RunContext = field(default_factory=RunContext)
    input: dict[str, Any] = field(default_factory=dict)
    steps: list[StepResult] = field(default_factory=list)
    retries: int = 0
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    duration_ms: int | None = None
    error: str | None = None
    finalized: bool = False

    def transition(self, target: RunStatus) -> None:
        """Move the run to ``target``.

        Args:
            target: The requested status.

        Raises:
            RunAlreadyFinalizedError: If the run is finalized.
            InvalidTransitionError: If the lifecycle does not allow the move.
        """
        if self.finalized:
            raise RunAlreadyFinalizedError(self.id)
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status, target)
        self.status = target

    def mark_completed(self, now: datetime) -> None:
        """Transition to COMPLETED and stamp the completion time."""
        self.transition(RunStatus.COMPLETED)
        self.error = None
        self._stamp(now)

    def mark_failed(self, error: str, now: datetime) -> None:
        """Transition to FAILED with ``error`` and stamp the completion time."""
        self.transition(RunStatus.FAILED)
        self.error = error
        self._stamp(now)

    def finalize(self) -> None:
        """Freeze the run's status. Only terminal runs can be finalized."""
        if self.status not in (RunStatus.COMPLETED, RunStatus.FAILED):
            raise InvalidTransitionError(self.status, "finalized")
        self.finalized = True

    def append_step(self, result: StepResult) -> None:
        """Append a step result to the execution log."""
        self.steps.append(result)

    def completed_step_names(self) -> set[str]:
        """Names of all steps that completed in any attempt."""
        return {result.name for result in self.steps if result.succeeded}

    def recorded_branches(self) -> dict[str, str]:
        """Branch labels chosen by completed condition steps, keyed by step name."""
        return {
            result.name: result.branch
            for result in self.steps
            if result.succeeded and result.branch is not None
        }

    def failed_steps(self) -> list[StepResult]:
        """All failed step results in log order."""
        return [result for result in self.steps if not result.succeeded]

    def _stamp(self, now: datetime) -> None:
        self.completed_at = now
        self.duration_ms = max(0, int((now - self.started_at).total_seconds() * 1000))


@dataclass
class ErrorRecord:
    """Persisted record of a permanently failed or stuck run.

    Attributes:
        run_id: The affected run.
        workflow_name: Name of its template.
        trigger: Trigger label of the run.
        error: The run error or the stuck-run description.
        kind: Whether this records a failure or a stuck run.
        retries: Retry attempts made by the run.
        failed_steps: ``{"name": ..., "error": ...}`` entries for failed steps.
        occurred_at: When the record was created.
    """

    run_id: UUID
    workflow_name: str
    trigger: str
    error: str
    kind: ErrorKind = ErrorKind.FAILURE
    retries: int = 0
    failed_steps: list[dict[str, Any]] = field(default_factory=list)
    occurred_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_run(cls, run: WorkflowRun, *, kind: ErrorKind = ErrorKind.FAILURE, error: str | None = None) -> ErrorRecord:
        """Build a record describing ``run``."""
        return cls(
            run_id=run.id,
            workflow_name=run.workflow_name,
            trigger=run.trigger,
            error=error or run.error or "",
            kind=kind,
            retries=run.retries,
            failed_steps=[{"name": result.name, "error": result.error} for result in run.failed_steps()],
        )


@dataclass(frozen=True)
class WebhookResponse:
    """Status code and decoded body returned by a webhook call."""

    status_code: int
    body: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"statusCode": self.status_code, "body": self.body}


@dataclass(frozen=True)
class TemplateVersionInfo:
    """Summary entry returned when listing template versions."""

    version: int | str
    step_count: int
    created_at: datetime | None = None
