"""Core type definitions for process-pilot.

This module defines the enums and type aliases shared by the engine, the
stores and the step handlers.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Final, TypeAlias

__all__ = [
    "LATEST",
    "ContextData",
    "ErrorKind",
    "RunStatus",
    "StepKind",
    "StepStatus",
    "VersionRef",
]

LATEST: Final = "latest"
"""Label of the separately mutable template document."""

ContextData: TypeAlias = dict[str, Any]
"""Plain mapping form of a run context."""

VersionRef: TypeAlias = "int | str | None"
"""A template version: a number, ``"latest"`` or ``None`` (same as latest)."""


class RunStatus(StrEnum):
    """Lifecycle status of a workflow run.

    Attributes:
        PENDING: Run object created, nothing executed yet.
        RUNNING: Steps are being walked.
        RETRYING: The previous attempt failed and the run waits for its backoff.
        COMPLETED: All steps finished without a required failure.
        FAILED: The run aborted. Terminal unless a retry moves it to RETRYING.
    """

    PENDING = "pending"
    RUNNING = "running"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def in_flight(self) -> bool:
        """Whether a run in this status is still being worked on."""
        return self in (RunStatus.RUNNING, RunStatus.RETRYING)


class StepStatus(StrEnum):
    """Outcome of a single step execution."""

    COMPLETED = "completed"
    FAILED = "failed"


class StepKind(StrEnum):
    """Kinds of steps a template may declare.

    Attributes:
        FETCH_RECORDS: Query a table of the record store.
        CREATE_RECORD: Insert a record.
        UPDATE_RECORD: Update a record by id.
        AI_CLASSIFY: Ask the text generator for a structured answer.
        AI_GENERATE: Ask the text generator for free text.
        CONDITION: Evaluate a predicate and run the selected branch.
        WEBHOOK: Call an HTTP endpoint.
        NOTIFY: Send a notification.
        DELAY: Sleep for a fixed duration.
    """

    FETCH_RECORDS = "fetch_records"
    CREATE_RECORD = "create_record"
    UPDATE_RECORD = "update_record"
    AI_CLASSIFY = "ai_classify"
    AI_GENERATE = "ai_generate"
    CONDITION = "condition"
    WEBHOOK = "webhook"
    NOTIFY = "notify"
    DELAY = "delay"


class ErrorKind(StrEnum):
    """Kinds of persisted error records."""

    FAILURE = "failure"
    STUCK = "stuck"
