"""Runtime configuration for the workflow runner."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

__all__ = ["RunnerConfig"]


@dataclass
class RunnerConfig:
    """Tunables of the runner, the retry controller, the monitor and performance reviews.

    Attributes:
        retry_base_delay_ms: Backoff before the first retry; doubles per attempt.
        default_delay_ms: Duration of a ``delay`` step that declares none.
        stuck_threshold: In-flight time after which the monitor flags a run.
        monitor_interval: Pause between monitor scans in ``run_forever``.
        cancel_stuck_runs: Whether the monitor also cancels the runs it flags.
        classify_model: Model used by ``ai_classify`` steps that name none.
        generate_model: Model used by ``ai_generate`` steps that name none.
        classify_max_tokens: Token budget of ``ai_classify`` steps that declare none.
        generate_max_tokens: Token budget of ``ai_generate`` steps that declare none.
        history_limit: Default number of runs returned by history queries.
        performance_window: History window covered by performance reviews.
        performance_review_interval: Pause between scheduled performance reviews.
    """

    retry_base_delay_ms: int = 2000
    default_delay_ms: int = 1000
    stuck_threshold: timedelta = timedelta(minutes=10)
    monitor_interval: timedelta = timedelta(minutes=5)
    cancel_stuck_runs: bool = False
    classify_model: str = "fast"
    generate_model: str = "standard"
    classify_max_tokens: int = 500
    generate_max_tokens: int = 1500
    history_limit: int = 50
    performance_window: timedelta = timedelta(days=7)
    performance_review_interval: timedelta = timedelta(days=1)
