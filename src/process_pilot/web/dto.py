"""Data Transfer Objects for the automation web API.

This module defines DTOs for serializing and deserializing templates, runs
and metrics in REST API requests and responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from process_pilot.core.definition import WorkflowTemplate
    from process_pilot.core.models import StepResult, TemplateVersionInfo, WorkflowRun
    from process_pilot.engine.performance import WorkflowPerformance
    from process_pilot.engine.registry import WorkflowMetrics

__all__ = [
    "CancelRunDTO",
    "StartRunDTO",
    "StepResultDTO",
    "TemplateDTO",
    "TemplateVersionDTO",
    "WorkflowMetricsDTO",
    "WorkflowPerformanceDTO",
    "WorkflowRunDTO",
    "WorkflowRunDetailDTO",
]


def _version_label(version: int | str | None) -> str | None:
    return None if version is None else str(version)


@dataclass
class StartRunDTO:
    """DTO for starting a workflow run.

    Attributes:
        workflow_name: Name of the template to execute.
        trigger: Label of what started the run.
        context: Initial context values.
        version: Template version; omitted means latest.
    """

    workflow_name: str
    trigger: str = "api"
    context: dict[str, Any] | None = None
    version: str | None = None


@dataclass
class CancelRunDTO:
    """DTO for cancelling an in-flight run.

    Attributes:
        reason: Recorded as the run's error.
    """

    reason: str = "cancelled by operator"


@dataclass
class TemplateDTO:
    """DTO for a template document.

    Attributes:
        name: Template name.
        version: ``"latest"`` or the version number.
        description: Human-readable description.
        retry: Whether failed runs are retried.
        max_retries: Retry budget.
        step_count: Number of top-level steps.
        document: The full template document.
    """

    name: str
    version: str
    description: str | None
    retry: bool
    max_retries: int
    step_count: int
    document: dict[str, Any]

    @classmethod
    def from_template(cls, template: WorkflowTemplate) -> TemplateDTO:
        return cls(
            name=template.name,
            version=str(template.version),
            description=template.description,
            retry=template.retry,
            max_retries=template.max_retries,
            step_count=len(template.steps),
            document=template.to_document(),
        )


@dataclass
class TemplateVersionDTO:
    """DTO for one entry of a template's version list."""

    version: str
    step_count: int
    created_at: datetime | None = None

    @classmethod
    def from_info(cls, info: TemplateVersionInfo) -> TemplateVersionDTO:
        return cls(version=str(info.version), step_count=info.step_count, created_at=info.created_at)


@dataclass
class StepResultDTO:
    """DTO for one entry of a run's step log.

    Attributes:
        name: Step name.
        kind: Step kind.
        status: ``completed`` or ``failed``.
        data: Data produced by the step.
        error: Error message if the step failed.
        duration_ms: Handler wall time.
        branch: Selected branch label (condition steps only).
        required: Whether the step was required.
        started_at: When the handler was invoked.
    """

    name: str
    kind: str
    status: str
    data: Any
    error: str | None
    duration_ms: int
    branch: str | None
    required: bool
    started_at: datetime

    @classmethod
    def from_result(cls, result: StepResult) -> StepResultDTO:
        return cls(
            name=result.name,
            kind=str(result.kind),
            status=str(result.status),
            data=result.data,
            error=result.error,
            duration_ms=result.duration_ms,
            branch=result.branch,
            required=result.required,
            started_at=result.started_at,
        )


@dataclass
class WorkflowRunDTO:
    """DTO for a run summary.

    Attributes:
        id: Run ID.
        workflow_name: Template name.
        version: Template version the run resolved.
        trigger: Trigger label.
        status: Current run status.
        retries: Retry attempts made.
        started_at: When the run started.
        completed_at: When the latest attempt ended.
        duration_ms: Run duration.
        error: Error of the latest attempt.
    """

    id: UUID
    workflow_name: str
    version: str | None
    trigger: str
    status: str
    retries: int
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: int | None = None
    error: str | None = None

    @classmethod
    def from_run(cls, run: WorkflowRun) -> WorkflowRunDTO:
        return cls(
            id=run.id,
            workflow_name=run.workflow_name,
            version=_version_label(run.version),
            trigger=run.trigger,
            status=str(run.status),
            retries=run.retries,
            started_at=run.started_at,
            completed_at=run.completed_at,
            duration_ms=run.duration_ms,
            error=run.error,
        )


@dataclass
class WorkflowRunDetailDTO:
    """DTO for a run with its context and step log.

    Extends WorkflowRunDTO with the initial input, the current context and
    the step log.
    """

    id: UUID
    workflow_name: str
    version: str | None
    trigger: str
    status: str
    retries: int
    started_at: datetime
    completed_at: datetime | None
    duration_ms: int | None
    error: str | None
    input: dict[str, Any]
    context: dict[str, Any]
    steps: list[StepResultDTO]

    @classmethod
    def from_run(cls, run: WorkflowRun) -> WorkflowRunDetailDTO:
        return cls(
            id=run.id,
            workflow_name=run.workflow_name,
            version=_version_label(run.version),
            trigger=run.trigger,
            status=str(run.status),
            retries=run.retries,
            started_at=run.started_at,
            completed_at=run.completed_at,
            duration_ms=run.duration_ms,
            error=run.error,
            input=run.input,
            context=run.context.to_dict(),
            steps=[StepResultDTO.from_result(step) for step in run.steps],
        )


@dataclass
class WorkflowMetricsDTO:
    """DTO for per-workflow outcome counters."""

    workflow_name: str
    total_runs: int
    completed_runs: int
    failed_runs: int
    avg_duration_ms: int
    retry_rate: float
    last_run: datetime | None = None

    @classmethod
    def from_metrics(cls, workflow_name: str, metrics: WorkflowMetrics) -> WorkflowMetricsDTO:
        return cls(
            workflow_name=workflow_name,
            total_runs=metrics.total_runs,
            completed_runs=metrics.completed_runs,
            failed_runs=metrics.failed_runs,
            avg_duration_ms=metrics.avg_duration_ms,
            retry_rate=metrics.retry_rate,
            last_run=metrics.last_run,
        )


@dataclass
class WorkflowPerformanceDTO:
    """DTO for one workflow of a performance review."""

    workflow_name: str
    runs: int
    completed: int
    failed: int
    avg_duration_ms: int
    max_duration_ms: int
    failure_rate: float
    retry_rate: float
    issues: list[str]
    needs_optimization: bool

    @classmethod
    def from_performance(cls, entry: WorkflowPerformance) -> WorkflowPerformanceDTO:
        return cls(
            workflow_name=entry.name,
            runs=entry.runs,
            completed=entry.completed,
            failed=entry.failed,
            avg_duration_ms=entry.avg_duration_ms,
            max_duration_ms=entry.max_duration_ms,
            failure_rate=entry.failure_rate,
            retry_rate=entry.retry_rate,
            issues=list(entry.issues),
            needs_optimization=entry.needs_optimization,
        )
