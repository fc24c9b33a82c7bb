"""Workflow runner: orchestrates one run end to end.

The runner resolves the template, walks its steps, hands failed runs to the
retry controller, invokes the failure handler for permanent failures and
persists the outcome. It owns its registry of in-flight runs and its metrics,
so several runners can live side by side.
"""

from __future__ import annotations

import asyncio
import copy
from typing import TYPE_CHECKING, Any

import structlog

from process_pilot.config import RunnerConfig
from process_pilot.core.context import RunContext
from process_pilot.core.models import WorkflowRun
from process_pilot.core.signals import CancellationToken
from process_pilot.core.types import RunStatus
from process_pilot.engine.alerts import FailureHandler
from process_pilot.engine.executor import StepExecutor
from process_pilot.engine.monitor import RunMonitor
from process_pilot.engine.performance import WorkflowPerformance, analyze_performance, render_performance_report
from process_pilot.engine.registry import RunRegistry, WorkflowMetrics
from process_pilot.engine.retry import BackoffPolicy, RetryController
from process_pilot.engine.walker import StepWalker
from process_pilot.exceptions import AutomationError
from process_pilot.integrations.clock import AsyncioClock
from process_pilot.steps.base import StepServices

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime, timedelta
    from uuid import UUID

    from process_pilot.core.definition import WorkflowTemplate
    from process_pilot.core.protocols import (
        Clock,
        Notifier,
        RecordStore,
        RunRepository,
        TemplateStore,
        TextGenerator,
        WebhookClient,
    )

__all__ = ["Runner"]

logger = structlog.get_logger(__name__)


class Runner:
    """Execute workflow templates.

    Attributes:
        templates: Store the templates are loaded from.
        repository: Run history; ``None`` disables persistence.
        clock: Time source for delays, backoff and timestamps.
        config: Runner settings.
        registry: In-flight runs and per-workflow metrics of this runner.
        executor: Step dispatcher.
        retry_controller: Retry and backoff policy.
        failure_handler: Invoked for every permanently failed run.

    Example:
        >>> runner = Runner(templates=store, repository=repo, notifier=notifier)
        >>> run = await runner.execute_workflow("lead-intake", "cron", {"region": "ZH"})
        >>> run.status
        <RunStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        templates: TemplateStore,
        repository: RunRepository | None = None,
        *,
        record_store: RecordStore | None = None,
        text_generator: TextGenerator | None = None,
        notifier: Notifier | None = None,
        webhook_client: WebhookClient | None = None,
        clock: Clock | None = None,
        config: RunnerConfig | None = None,
        executor: StepExecutor | None = None,
        failure_handler: FailureHandler | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            templates: Template store.
            repository: Run repository used for history, replay and error records.
            record_store: Backend for record steps.
            text_generator: Backend for AI steps.
            notifier: Channel for notify steps and alerts.
            webhook_client: HTTP caller for webhook steps.
            clock: Time source. Defaults to :class:`AsyncioClock`.
            config: Runner settings. Defaults to :class:`RunnerConfig`.
            executor: Custom step executor. Defaults to one with every built-in handler.
            failure_handler: Custom failure handler.
        """
        self.templates = templates
        self.repository = repository
        self.notifier = notifier
        self.clock: Clock = clock or AsyncioClock()
        self.config = config or RunnerConfig()
        self.registry = RunRegistry()
        self.executor = executor or StepExecutor(
            StepServices(
                clock=self.clock,
                config=self.config,
                record_store=record_store,
                text_generator=text_generator,
                notifier=notifier,
                webhook_client=webhook_client,
            )
        )
        self.walker = StepWalker(self.executor, self.clock)
        self.retry_controller = RetryController(self.clock, BackoffPolicy(self.config.retry_base_delay_ms))
        self.failure_handler = failure_handler or FailureHandler(notifier=notifier, repository=repository)
        self._tasks: set[asyncio.Task[WorkflowRun]] = set()

    async def execute_workflow(
        self,
        name: str,
        trigger: str,
        context: Mapping[str, Any] | None = None,
        version: int | str | None = None,
        *,
        deadline: datetime | None = None,
    ) -> WorkflowRun:
        """Run a workflow to its final outcome, retries included.

        Step failures never raise out of this method; they are reflected in the
        returned run's status, error and step log.

        Args:
            name: Template name.
            trigger: Label of what started the run.
            context: Initial context values. Copied, never mutated.
            version: Template version; ``None`` means latest.
            deadline: Point in time after which the run is cancelled at the
                next step boundary.

        Returns:
            The finalized run.
        """
        initial = copy.deepcopy(dict(context or {}))
        run = WorkflowRun(
            workflow_name=name,
            trigger=trigger,
            version=version,
            context=RunContext(copy.deepcopy(initial)),
            input=initial,
            started_at=self.clock.now(),
        )
        token = CancellationToken(deadline)
        run.transition(RunStatus.RUNNING)
        self.registry.register(run, token)
        log = logger.bind(run_id=str(run.id), workflow=name, trigger=trigger)
        log.info("workflow_started", version=version)

        try:
            try:
                template = await self.templates.load(name, version)
            except AutomationError as exc:
                log.error("template_load_failed", error=str(exc))
                run.mark_failed(str(exc), self.clock.now())
            else:
                run.version = template.version
                await self._execute(run, template, token)
            await self._finish(run)
        finally:
            self.registry.deregister(run.id)

        log.info("workflow_finished", status=str(run.status), retries=run.retries, duration_ms=run.duration_ms)
        return run

    def launch(
        self,
        name: str,
        trigger: str,
        context: Mapping[str, Any] | None = None,
        version: int | str | None = None,
        *,
        deadline: datetime | None = None,
    ) -> asyncio.Task[WorkflowRun]:
        """Start :meth:`execute_workflow` as a background task tracked by the runner."""
        task = asyncio.create_task(self.execute_workflow(name, trigger, context, version, deadline=deadline))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every background run started with :meth:`launch`."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def replay(self, run_id: UUID) -> WorkflowRun:
        """Execute a past run again as a brand-new run.

        The stored run's initial context is reused against the latest template;
        the trigger becomes ``"replay:<run_id>"``. The stored run is left untouched.

        Raises:
            RunNotFoundError: If ``run_id`` is unknown.
        """
        original = await self._require_repository().get(run_id)
        logger.info("workflow_replay", run_id=str(run_id), workflow=original.workflow_name)
        return await self.execute_workflow(original.workflow_name, f"replay:{run_id}", copy.deepcopy(original.input))

    async def get_run(self, run_id: UUID) -> WorkflowRun:
        """Return an in-flight run or the stored snapshot of a finished one.

        Raises:
            RunNotFoundError: If the run is neither in flight nor stored.
        """
        live = self.registry.get(run_id)
        if live is not None:
            return live
        return await self._require_repository().get(run_id)

    async def history(self, workflow_name: str | None = None, limit: int | None = None) -> Sequence[WorkflowRun]:
        """Return stored runs newest first."""
        return await self._require_repository().history(workflow_name, limit or self.config.history_limit)

    def active_runs(self) -> list[WorkflowRun]:
        """Return the runs currently in flight."""
        return self.registry.snapshot()

    def metrics(self, workflow_name: str | None = None) -> dict[str, WorkflowMetrics]:
        """Return per-workflow outcome metrics of this runner."""
        return self.registry.metrics(workflow_name)

    def cancel(self, run_id: UUID, reason: str = "cancelled by operator") -> bool:
        """Request cooperative cancellation of an in-flight run.

        Returns:
            ``True`` if the run was in flight and has been signalled.
        """
        signalled = self.registry.cancel(run_id, reason)
        logger.info("workflow_cancel_requested", run_id=str(run_id), reason=reason, signalled=signalled)
        return signalled

    async def analyze_performance(
        self,
        window: timedelta | None = None,
        *,
        report: bool = False,
    ) -> list[WorkflowPerformance]:
        """Aggregate stored runs of the last ``window`` and flag problematic workflows.

        Args:
            window: History covered. Defaults to ``config.performance_window``.
            report: Send a performance report through the notifier when at
                least one workflow needs optimization.

        Returns:
            One entry per workflow, most issues first.
        """
        window = window or self.config.performance_window
        runs = await self._require_repository().history(None, limit=10_000, since=self.clock.now() - window)
        analysis = analyze_performance(runs)
        attention = [entry.name for entry in analysis if entry.needs_optimization]
        logger.info("performance_analyzed", workflows=len(analysis), runs=len(runs), attention=attention)
        if report and attention:
            await self._send_performance_report(analysis, window)
        return analysis

    async def review_performance_forever(self, interval: timedelta | None = None) -> None:
        """Analyze and report performance every ``interval`` until cancelled."""
        interval = interval or self.config.performance_review_interval
        while True:
            try:
                await self.analyze_performance(report=True)
            except Exception:  # noqa: BLE001
                logger.exception("performance_review_failed")
            await self.clock.sleep(int(interval.total_seconds() * 1000))

    def monitor(self, **overrides: Any) -> RunMonitor:
        """Build a :class:`RunMonitor` watching this runner's registry."""
        options: dict[str, Any] = {
            "notifier": self.notifier,
            "repository": self.repository,
            "threshold": self.config.stuck_threshold,
            "cancel_stuck": self.config.cancel_stuck_runs,
        }
        options.update(overrides)
        return RunMonitor(self.registry, self.clock, **options)

    async def _execute(self, run: WorkflowRun, template: WorkflowTemplate, token: CancellationToken) -> None:
        async def attempt(current: WorkflowRun) -> BaseException | None:
            return await self._attempt(current, template, token)

        error = await attempt(run)
        if error is not None:
            await self.retry_controller.retry(run, template, error, attempt, self._persist, token)

    async def _attempt(
        self,
        run: WorkflowRun,
        template: WorkflowTemplate,
        token: CancellationToken,
    ) -> BaseException | None:
        try:
            await self.walker.walk(
                template.steps,
                run,
                token,
                skip=run.completed_step_names(),
                branches=run.recorded_branches(),
            )
        except AutomationError as exc:
            logger.warning("workflow_attempt_failed", run_id=str(run.id), retries=run.retries, error=str(exc))
            run.mark_failed(str(exc), self.clock.now())
            return exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("workflow_attempt_crashed", run_id=str(run.id))
            run.mark_failed(str(exc) or type(exc).__name__, self.clock.now())
            return exc
        run.mark_completed(self.clock.now())
        return None

    async def _finish(self, run: WorkflowRun) -> None:
        if run.status == RunStatus.FAILED:
            await self.failure_handler.handle(run)
        run.finalize()
        await self._persist(run)
        self.registry.record_outcome(run)

    async def _send_performance_report(self, analysis: list[WorkflowPerformance], window: timedelta) -> None:
        logger.warning("workflows_need_optimization", count=sum(entry.needs_optimization for entry in analysis))
        if self.notifier is None:
            return
        subject, html = render_performance_report(analysis, window.days)
        try:
            await self.notifier.send(subject, html)
        except Exception:  # noqa: BLE001
            logger.exception("performance_report_failed")

    async def _persist(self, run: WorkflowRun) -> None:
        if self.repository is None:
            return
        try:
            await self.repository.save(run)
        except Exception:  # noqa: BLE001
            logger.exception("run_persist_failed", run_id=str(run.id), status=str(run.status))

    def _require_repository(self) -> RunRepository:
        if self.repository is None:
            msg = "Runner has no run repository configured"
            raise RuntimeError(msg)
        return self.repository
