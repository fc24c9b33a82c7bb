"""Workflow execution engine.

This module provides the runner and the pieces it is assembled from: the step
executor and walker, the retry controller, the run registry, failure alerts,
the stuck-run monitor and performance analysis.
"""

from __future__ import annotations

from process_pilot.engine.alerts import FailureHandler, render_failure_alert
from process_pilot.engine.executor import StepExecutor
from process_pilot.engine.monitor import RunMonitor, StuckRunAlert
from process_pilot.engine.performance import WorkflowPerformance, analyze_performance
from process_pilot.engine.registry import RunRegistry, WorkflowMetrics
from process_pilot.engine.retry import BackoffPolicy, RetryController
from process_pilot.engine.runner import Runner
from process_pilot.engine.walker import StepWalker

__all__ = [
    "BackoffPolicy",
    "FailureHandler",
    "RetryController",
    "RunMonitor",
    "RunRegistry",
    "Runner",
    "StepExecutor",
    "StepWalker",
    "StuckRunAlert",
    "WorkflowMetrics",
    "WorkflowPerformance",
    "analyze_performance",
    "render_failure_alert",
]
