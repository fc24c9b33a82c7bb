"""Performance review over stored run history."""

from __future__ import annotations

from dataclasses import dataclass, field
from html import escape
from typing import TYPE_CHECKING, Final

from process_pilot.core.types import RunStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from process_pilot.core.models import WorkflowRun

__all__ = ["WorkflowPerformance", "analyze_performance", "render_performance_report"]

SLOW_AVERAGE_MS: Final = 30_000
EXTREME_DURATION_MS: Final = 120_000
MAX_FAILURE_RATE: Final = 10.0
MAX_RETRY_RATE: Final = 20.0


@dataclass
class WorkflowPerformance:
    """Aggregated history of one workflow with the issues found in it.

    Rates are percentages of runs, rounded to one decimal.
    """

    name: str
    runs: int = 0
    completed: int = 0
    failed: int = 0
    total_duration_ms: int = 0
    max_duration_ms: int = 0
    total_retries: int = 0
    issues: list[str] = field(default_factory=list)

    @property
    def avg_duration_ms(self) -> int:
        return round(self.total_duration_ms / self.runs) if self.runs else 0

    @property
    def failure_rate(self) -> float:
        return round(self.failed / self.runs * 100, 1) if self.runs else 0.0

    @property
    def retry_rate(self) -> float:
        return round(self.total_retries / self.runs * 100, 1) if self.runs else 0.0

    @property
    def needs_optimization(self) -> bool:
        return bool(self.issues)


def analyze_performance(runs: Iterable[WorkflowRun]) -> list[WorkflowPerformance]:
    """Aggregate runs per workflow and flag slow or unreliable workflows.

    Args:
        runs: Finished runs, in any order.

    Returns:
        One entry per workflow, the ones with most issues first.
    """
    stats: dict[str, WorkflowPerformance] = {}
    for run in runs:
        entry = stats.setdefault(run.workflow_name, WorkflowPerformance(name=run.workflow_name))
        entry.runs += 1
        if run.status == RunStatus.COMPLETED:
            entry.completed += 1
        elif run.status == RunStatus.FAILED:
            entry.failed += 1
        duration = run.duration_ms or 0
        entry.total_duration_ms += duration
        entry.max_duration_ms = max(entry.max_duration_ms, duration)
        entry.total_retries += run.retries

    for entry in stats.values():
        if entry.avg_duration_ms > SLOW_AVERAGE_MS:
            entry.issues.append("Slow average execution time")
        if entry.failure_rate > MAX_FAILURE_RATE:
            entry.issues.append("High failure rate")
        if entry.retry_rate > MAX_RETRY_RATE:
            entry.issues.append("High retry rate")
        if entry.max_duration_ms > EXTREME_DURATION_MS:
            entry.issues.append("Extremely long max execution")

    return sorted(stats.values(), key=lambda entry: len(entry.issues), reverse=True)


def render_performance_report(analysis: Sequence[WorkflowPerformance], period_days: int = 7) -> tuple[str, str]:
    """Build the subject and HTML table of a performance report.

    Args:
        analysis: Result of :func:`analyze_performance`.
        period_days: Length of the analysed window, shown in the report.

    Returns:
        ``(subject, html)``.
    """
    attention = sum(1 for entry in analysis if entry.needs_optimization)
    rows = "".join(_report_row(entry) for entry in analysis)
    html = (
        "<h2>Workflow Performance Report</h2>"
        f"<p>Analysis period: Last {period_days} days</p>"
        '<table style="width: 100%; border-collapse: collapse;">'
        '<tr style="background: #f5f5f5;">'
        "<th>Workflow</th><th>Runs</th><th>Failure Rate</th><th>Avg Duration</th><th>Retry Rate</th><th>Issues</th>"
        f"</tr>{rows}</table>"
    )
    return f"Workflow Performance: {attention} need attention", html


def _report_row(entry: WorkflowPerformance) -> str:
    style = "padding: 8px; border-bottom: 1px solid #eee;"
    failure_color = "#e74c3c" if entry.failure_rate > MAX_FAILURE_RATE else "#333"
    status_color = "#e74c3c" if entry.needs_optimization else "#27ae60"
    issues = escape(", ".join(entry.issues)) if entry.issues else "OK"
    return (
        "<tr>"
        f'<td style="{style}">{escape(entry.name)}</td>'
        f'<td style="{style}">{entry.runs}</td>'
        f'<td style="{style} color: {failure_color};">{entry.failure_rate}%</td>'
        f'<td style="{style}">{entry.avg_duration_ms / 1000:.1f}s</td>'
        f'<td style="{style}">{entry.retry_rate}%</td>'
        f'<td style="{style} color: {status_color};">{issues}</td>'
        "</tr>"
    )
