"""Stuck-run detection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from html import escape
from typing import TYPE_CHECKING

import structlog

from process_pilot.core.models import ErrorRecord
from process_pilot.core.types import ErrorKind

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from process_pilot.core.models import WorkflowRun
    from process_pilot.core.protocols import Clock, Notifier, RunRepository
    from process_pilot.engine.registry import RunRegistry

__all__ = ["RunMonitor", "StuckRunAlert"]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StuckRunAlert:
    """A run that has been in flight longer than the threshold."""

    run_id: UUID
    workflow_name: str
    trigger: str
    started_at: datetime
    elapsed: timedelta

    @property
    def message(self) -> str:
        return f"Workflow stuck for {int(self.elapsed.total_seconds())}s"


class RunMonitor:
    """Periodically inspect the run registry for stuck runs.

    Each stuck run is logged, alerted through the notifier and recorded as an
    error exactly once. By default the monitor only observes; with
    ``cancel_stuck`` it also signals the run's cancellation token so the run
    stops at its next step boundary.

    Attributes:
        threshold: In-flight time after which a run counts as stuck.
        cancel_stuck: Whether flagged runs are cancelled.
    """

    def __init__(
        self,
        registry: RunRegistry,
        clock: Clock,
        *,
        notifier: Notifier | None = None,
        repository: RunRepository | None = None,
        threshold: timedelta = timedelta(minutes=10),
        cancel_stuck: bool = False,
    ) -> None:
        self.registry = registry
        self.clock = clock
        self.notifier = notifier
        self.repository = repository
        self.threshold = threshold
        self.cancel_stuck = cancel_stuck
        self._alerted: set[UUID] = set()

    async def scan(self) -> list[StuckRunAlert]:
        """Check every in-flight run once.

        Returns:
            Alerts raised by this scan; runs flagged by an earlier scan are not
            repeated.
        """
        now = self.clock.now()
        in_flight = self.registry.snapshot()
        alerts: list[StuckRunAlert] = []
        for run in in_flight:
            if not run.status.in_flight or run.id in self._alerted:
                continue
            elapsed = now - run.started_at
            if elapsed <= self.threshold:
                continue

            alert = StuckRunAlert(
                run_id=run.id,
                workflow_name=run.workflow_name,
                trigger=run.trigger,
                started_at=run.started_at,
                elapsed=elapsed,
            )
            self._alerted.add(run.id)
            logger.warning(
                "stuck_run_detected",
                run_id=str(run.id),
                workflow=run.workflow_name,
                elapsed_s=int(elapsed.total_seconds()),
            )
            await self._report(run, alert)
            if self.cancel_stuck:
                self.registry.cancel(run.id, alert.message)
            alerts.append(alert)

        self._alerted &= {run.id for run in in_flight}
        return alerts

    async def run_forever(self, interval: timedelta) -> None:
        """Scan every ``interval`` until the surrounding task is cancelled."""
        while True:
            try:
                await self.scan()
            except Exception:  # noqa: BLE001
                logger.exception("monitor_scan_failed")
            await self.clock.sleep(int(interval.total_seconds() * 1000))

    async def _report(self, run: WorkflowRun, alert: StuckRunAlert) -> None:
        if self.repository is not None:
            try:
                await self.repository.record_error(ErrorRecord.from_run(run, kind=ErrorKind.STUCK, error=alert.message))
            except Exception:  # noqa: BLE001
                logger.exception("stuck_record_failed", run_id=str(run.id))
        if self.notifier is not None:
            html = (
                f"<p><strong>Workflow:</strong> {escape(alert.workflow_name)}</p>"
                f"<p><strong>Run:</strong> {alert.run_id}</p>"
                f"<p><strong>Started:</strong> {alert.started_at.isoformat()}</p>"
                f"<p>{alert.message}</p>"
            )
            try:
                await self.notifier.send(f"WORKFLOW STUCK: {alert.workflow_name}", html)
            except Exception:  # noqa: BLE001
                logger.exception("stuck_alert_failed", run_id=str(run.id))
