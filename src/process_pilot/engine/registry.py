"""In-flight run tracking and per-workflow metrics.

The :class:`RunRegistry` is owned by a runner instance; several runners can
coexist in one process without sharing state. All maps are guarded by a lock
and iteration always happens over a snapshot, so runs may start and finish
while the monitor scans.
"""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from process_pilot.core.types import RunStatus

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from process_pilot.core.models import WorkflowRun
    from process_pilot.core.signals import CancellationToken

__all__ = ["RunRegistry", "WorkflowMetrics"]


@dataclass
class WorkflowMetrics:
    """Aggregated outcome statistics of one workflow.

    Attributes:
        total_runs: Finished runs.
        completed_runs: Runs that completed.
        failed_runs: Runs that failed permanently.
        total_duration_ms: Sum of run durations.
        total_retries: Sum of retry attempts.
        last_run: Completion time of the most recent run.
    """

    total_runs: int = 0
    completed_runs: int = 0
    failed_runs: int = 0
    total_duration_ms: int = 0
    total_retries: int = 0
    last_run: datetime | None = None

    @property
    def avg_duration_ms(self) -> int:
        return round(self.total_duration_ms / self.total_runs) if self.total_runs else 0

    @property
    def retry_rate(self) -> float:
        """Average number of retries per run."""
        return round(self.total_retries / self.total_runs, 2) if self.total_runs else 0.0

    def record(self, run: WorkflowRun) -> None:
        """Fold a finished run into the statistics."""
        self.total_runs += 1
        self.total_retries += run.retries
        if run.status == RunStatus.COMPLETED:
            self.completed_runs += 1
        else:
            self.failed_runs += 1
        if run.duration_ms:
            self.total_duration_ms += run.duration_ms
        self.last_run = run.completed_at or run.started_at


class RunRegistry:
    """Concurrency-safe registry of in-flight runs.

    Example:
        >>> registry = RunRegistry()
        >>> registry.register(run, CancellationToken())
        >>> [r.id for r in registry.snapshot()] == [run.id]
        True
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._runs: dict[UUID, WorkflowRun] = {}
        self._tokens: dict[UUID, CancellationToken] = {}
        self._metrics: dict[str, WorkflowMetrics] = {}

    def register(self, run: WorkflowRun, token: CancellationToken) -> None:
        """Start tracking ``run``."""
        with self._lock:
            self._runs[run.id] = run
            self._tokens[run.id] = token

    def deregister(self, run_id: UUID) -> WorkflowRun | None:
        """Stop tracking a run. Unknown ids are ignored."""
        with self._lock:
            self._tokens.pop(run_id, None)
            return self._runs.pop(run_id, None)

    def record_outcome(self, run: WorkflowRun) -> None:
        """Update the metrics of the run's workflow with its final outcome."""
        with self._lock:
            self._metrics.setdefault(run.workflow_name, WorkflowMetrics()).record(run)

    def get(self, run_id: UUID) -> WorkflowRun | None:
        with self._lock:
            return self._runs.get(run_id)

    def cancel(self, run_id: UUID, reason: str) -> bool:
        """Signal cancellation to an in-flight run.

        Returns:
            ``True`` if the run was in flight.
        """
        with self._lock:
            token = self._tokens.get(run_id)
        if token is None:
            return False
        token.cancel(reason)
        return True

    def snapshot(self) -> list[WorkflowRun]:
        """Return the in-flight runs at this instant, oldest first."""
        with self._lock:
            runs = list(self._runs.values())
        return sorted(runs, key=lambda run: run.started_at)

    def metrics(self, workflow_name: str | None = None) -> dict[str, WorkflowMetrics]:
        """Return copies of the metrics, optionally for one workflow only."""
        with self._lock:
            if workflow_name is not None:
                found = self._metrics.get(workflow_name)
                return {workflow_name: dataclasses.replace(found)} if found else {}
            return {name: dataclasses.replace(value) for name, value in self._metrics.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)

    def __contains__(self, run_id: object) -> bool:
        with self._lock:
            return run_id in self._runs
