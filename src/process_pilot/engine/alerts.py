"""Permanent-failure handling: error records and operator alerts."""

from __future__ import annotations

from html import escape
from typing import TYPE_CHECKING

import structlog

from process_pilot.core.models import ErrorRecord

if TYPE_CHECKING:
    from process_pilot.core.models import WorkflowRun
    from process_pilot.core.protocols import Notifier, RunRepository

__all__ = ["FailureHandler", "render_failure_alert"]

logger = structlog.get_logger(__name__)


def render_failure_alert(run: WorkflowRun) -> tuple[str, str]:
    """Build the subject and HTML body of a failure alert.

    Args:
        run: The permanently failed run.

    Returns:
        ``(subject, html)``.
    """
    subject = f"WORKFLOW FAILED: {run.workflow_name} ({run.retries} retries)"
    failed_steps = "".join(
        f"<li><strong>{escape(result.name)}</strong>: {escape(str(result.error))}</li>"
        for result in run.failed_steps()
    )
    html = (
        '<h2 style="color: #e74c3c;">Workflow Failure Alert</h2>'
        f"<p><strong>Workflow:</strong> {escape(run.workflow_name)}</p>"
        f"<p><strong>Trigger:</strong> {escape(run.trigger)}</p>"
        f"<p><strong>Error:</strong> {escape(str(run.error))}</p>"
        f"<p><strong>Retries:</strong> {run.retries}</p>"
        f"<p><strong>Duration:</strong> {run.duration_ms or 0}ms</p>"
        "<h3>Failed Steps:</h3>"
        f"<ul>{failed_steps}</ul>"
    )
    return subject, html


class FailureHandler:
    """Persist an error record and alert operators about a failed run.

    Problems while recording or notifying are logged and never raised; the run
    outcome is already decided when the handler runs.
    """

    def __init__(self, notifier: Notifier | None = None, repository: RunRepository | None = None) -> None:
        self.notifier = notifier
        self.repository = repository

    async def handle(self, run: WorkflowRun) -> None:
        logger.error(
            "workflow_permanently_failed",
            run_id=str(run.id),
            workflow=run.workflow_name,
            retries=run.retries,
            error=run.error,
        )
        if self.repository is not None:
            try:
                await self.repository.record_error(ErrorRecord.from_run(run))
            except Exception:  # noqa: BLE001
                logger.exception("failure_record_failed", run_id=str(run.id))
        if self.notifier is not None:
            subject, html = render_failure_alert(run)
            try:
                await self.notifier.send(subject, html)
            except Exception:  # noqa: BLE001
                logger.exception("failure_alert_failed", run_id=str(run.id))
