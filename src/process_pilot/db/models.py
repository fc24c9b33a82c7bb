"""SQLAlchemy models for template and run persistence.

This module defines the database models:
- WorkflowTemplateModel: Latest and numbered template documents
- WorkflowRunModel: Stored run snapshots
- StepResultModel: The step log of each run, one row per entry
- WorkflowErrorModel: Error records for failed and stuck runs
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Final
from uuid import UUID

from advanced_alchemy.base import UUIDAuditBase
from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import JSON, Enum, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from process_pilot.core.types import ErrorKind, RunStatus, StepKind, StepStatus

__all__ = [
    "LATEST_VERSION_NUMBER",
    "StepResultModel",
    "WorkflowErrorModel",
    "WorkflowRunModel",
    "WorkflowTemplateModel",
]


# Cross-database JSON type: uses JSONB for PostgreSQL, JSON for others (SQLite, MySQL, etc.)
JSONType = JSON().with_variant(JSONB, "postgresql")

LATEST_VERSION_NUMBER: Final = 0
"""Version number under which the mutable latest document is stored."""


class WorkflowTemplateModel(UUIDAuditBase):
    """Persisted template document.

    The latest document is stored with version ``0``; numbered versions are
    append-only rows. The unique index on ``(name, version)`` makes concurrent
    version creation fail instead of producing duplicates.

    Attributes:
        name: Template name.
        version: ``0`` for latest, otherwise the version number.
        description: Optional description from the document.
        document: The template document as JSON.
        step_count: Number of top-level steps.
    """

    __tablename__ = "workflow_templates"
    __table_args__ = (Index("ix_workflow_templates_name_version", "name", "version", unique=True),)

    name: Mapped[str] = mapped_column(String(255), index=True)
    version: Mapped[int] = mapped_column(default=LATEST_VERSION_NUMBER)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    document: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    step_count: Mapped[int] = mapped_column(default=0)


class WorkflowRunModel(UUIDAuditBase):
    """Stored snapshot of a workflow run.

    The primary key is the run id, so saving a run twice updates one row.

    Attributes:
        workflow_name: Name of the executed template.
        version: Template version the run resolved, as text.
        trigger: Trigger label.
        status: Run status at the time of saving.
        context_data: Run context as JSON.
        input_data: Initial context supplied by the trigger.
        retries: Retry attempts made.
        started_at: When the run started.
        completed_at: When the latest attempt ended.
        duration_ms: Run duration.
        error: Error of the latest attempt.
        finalized: Whether the run reached its final outcome.
        step_results: The step log.
    """

    __tablename__ = "workflow_runs"
    __table_args__ = (
        Index("ix_workflow_runs_workflow_name_started_at", "workflow_name", "started_at"),
        Index("ix_workflow_runs_status", "status"),
    )

    workflow_name: Mapped[str] = mapped_column(String(255))
    version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    trigger: Mapped[str] = mapped_column(String(255))
    status: Mapped[RunStatus] = mapped_column(
        Enum(RunStatus, native_enum=False, length=50),
        default=RunStatus.PENDING,
    )
    context_data: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    input_data: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    retries: Mapped[int] = mapped_column(default=0)
    started_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    finalized: Mapped[bool] = mapped_column(default=False)

    # Relationships
    step_results: Mapped[list[StepResultModel]] = relationship(
        back_populates="run",
        lazy="selectin",
        order_by="StepResultModel.position",
        passive_deletes=True,
    )


class StepResultModel(UUIDAuditBase):
    """One entry of a run's step log.

    Attributes:
        run_id: Foreign key to the run.
        position: Index of the entry in the step log.
        name: Step name.
        kind: Step kind.
        status: Step outcome.
        data: Data produced by the step.
        error: Error message if the step failed.
        duration_ms: Handler wall time.
        branch: Selected branch label (condition steps only).
        required: Whether the step was required.
        started_at: When the handler was invoked.
    """

    __tablename__ = "workflow_step_results"
    __table_args__ = (Index("ix_workflow_step_results_run_id_position", "run_id", "position", unique=True),)

    run_id: Mapped[UUID] = mapped_column(ForeignKey("workflow_runs.id", ondelete="CASCADE"))
    position: Mapped[int]
    name: Mapped[str] = mapped_column(String(255))
    kind: Mapped[StepKind] = mapped_column(Enum(StepKind, native_enum=False, length=50))
    status: Mapped[StepStatus] = mapped_column(Enum(StepStatus, native_enum=False, length=50))
    data: Mapped[Any | None] = mapped_column(JSONType, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_ms: Mapped[int] = mapped_column(default=0)
    branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    required: Mapped[bool] = mapped_column(default=True)
    started_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))

    # Relationships
    run: Mapped[WorkflowRunModel] = relationship(back_populates="step_results")


class WorkflowErrorModel(UUIDAuditBase):
    """Error record of a permanently failed or stuck run.

    ``run_id`` is not a foreign key: a stuck run is recorded before it has ever
    been saved.

    Attributes:
        run_id: The affected run.
        workflow_name: Template name.
        trigger: Trigger label.
        error: Error text.
        kind: Failure or stuck.
        retries: Retry attempts made by the run.
        failed_steps: Failed step names and errors.
        occurred_at: When the record was created.
    """

    __tablename__ = "workflow_errors"
    __table_args__ = (
        Index("ix_workflow_errors_run_id", "run_id"),
        Index("ix_workflow_errors_workflow_name_occurred_at", "workflow_name", "occurred_at"),
    )

    run_id: Mapped[UUID]
    workflow_name: Mapped[str] = mapped_column(String(255))
    trigger: Mapped[str] = mapped_column(String(255))
    error: Mapped[str] = mapped_column(Text)
    kind: Mapped[ErrorKind] = mapped_column(
        Enum(ErrorKind, native_enum=False, length=50),
        default=ErrorKind.FAILURE,
    )
    retries: Mapped[int] = mapped_column(default=0)
    failed_steps: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    occurred_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))
