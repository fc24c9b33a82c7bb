"""Litestar plugin for workflow automation.

This module provides the AutomationPlugin, which wires a :class:`Runner` and
its template store into a Litestar application.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog
from litestar.di import Provide
from litestar.plugins import InitPluginProtocol

from process_pilot.core.protocols import TemplateStore  # noqa: TC001 - needed for DI
from process_pilot.engine.runner import Runner
from process_pilot.log import configure_logging
from process_pilot.stores.memory import InMemoryRunRepository, InMemoryTemplateStore

if TYPE_CHECKING:
    from litestar.config.app import AppConfig

    from process_pilot.config import RunnerConfig
    from process_pilot.core.protocols import (
        Notifier,
        RecordStore,
        RunRepository,
        TextGenerator,
        WebhookClient,
    )

__all__ = ["AutomationPlugin", "AutomationPluginConfig"]

logger = structlog.get_logger(__name__)


@dataclass
class AutomationPluginConfig:
    """Configuration for the AutomationPlugin.

    Attributes:
        runner: Optional pre-configured Runner. When given, the store,
            repository and collaborator fields below are ignored.
        templates: Template store. Defaults to an in-memory store.
        repository: Run repository. Defaults to an in-memory repository.
        runner_config: Settings for the runner created by the plugin.
        record_store: Backend for record steps.
        text_generator: Backend for AI steps.
        notifier: Channel for notify steps and alerts.
        webhook_client: HTTP caller for webhook steps.
        dependency_key_runner: The key used for dependency injection of the
            Runner. The bundled controllers expect the default.
        dependency_key_templates: The key used for dependency injection of
            the template store. The bundled controllers expect the default.
        enable_api: Whether to enable the REST API endpoints. Defaults to True.
        api_path_prefix: URL path prefix for all automation API endpoints.
        api_guards: Litestar guards applied to all automation API endpoints.
        api_tags: OpenAPI tags applied to the automation API endpoints.
        include_api_in_schema: Whether to include API endpoints in the OpenAPI schema.
        start_monitor: Run the stuck-run monitor while the app is up.
        start_performance_review: Run the scheduled performance review while
            the app is up.
        configure_logging: Configure structlog on app init.
        log_level: Root log level used when ``configure_logging`` is set.
        json_logs: Render JSON log lines instead of the console format.
    """

    runner: Runner | None = None
    templates: TemplateStore | None = None
    repository: RunRepository | None = None
    runner_config: RunnerConfig | None = None
    record_store: RecordStore | None = None
    text_generator: TextGenerator | None = None
    notifier: Notifier | None = None
    webhook_client: WebhookClient | None = None
    dependency_key_runner: str = "automation_runner"
    dependency_key_templates: str = "template_store"
    enable_api: bool = True
    api_path_prefix: str = "/automation"
    api_guards: list[Any] = field(default_factory=list)
    api_tags: list[str] = field(default_factory=lambda: ["Automation"])
    include_api_in_schema: bool = True
    start_monitor: bool = False
    start_performance_review: bool = False
    configure_logging: bool = False
    log_level: str = "INFO"
    json_logs: bool = False


class AutomationPlugin(InitPluginProtocol):
    """Litestar plugin for workflow automation.

    Provides the Runner and the template store through dependency injection
    and mounts the REST API.

    Example:
        Basic usage::

            from litestar import Litestar
            from process_pilot import AutomationPlugin, AutomationPluginConfig

            app = Litestar(
                plugins=[
                    AutomationPlugin(
                        config=AutomationPluginConfig(
                            templates=SQLAlchemyTemplateStore(session_maker),
                            repository=SQLAlchemyRunRepository(session_maker),
                            start_monitor=True,
                        )
                    )
                ]
            )

        Using in a route handler::

            from litestar import post
            from process_pilot import Runner


            @post("/leads/import")
            async def import_leads(automation_runner: Runner) -> dict:
                run = await automation_runner.execute_workflow("lead-intake", "api")
                return {"run_id": str(run.id), "status": run.status}
    """

    __slots__ = ("_config", "_monitor_task", "_review_task", "_runner")

    def __init__(self, config: AutomationPluginConfig | None = None) -> None:
        """Initialize the plugin.

        Args:
            config: Optional configuration for the plugin.
        """
        self._config = config or AutomationPluginConfig()
        self._runner: Runner | None = None
        self._monitor_task: asyncio.Task[None] | None = None
        self._review_task: asyncio.Task[None] | None = None

    @property
    def runner(self) -> Runner:
        """Get the runner.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._runner is None:
            msg = "AutomationPlugin has not been initialized. Access runner after app startup."
            raise RuntimeError(msg)
        return self._runner

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Initialize the plugin when the Litestar app starts.

        This method:
        1. Optionally configures structured logging
        2. Creates or uses the provided Runner
        3. Adds dependency providers to the app config
        4. Registers lifecycle hooks for the monitor, the performance review and background runs
        5. Optionally registers REST API controllers if enable_api=True

        Args:
            app_config: The Litestar application configuration.

        Returns:
            The modified application configuration.
        """
        config = self._config
        if config.configure_logging:
            configure_logging(config.log_level, json=config.json_logs)

        self._runner = config.runner or Runner(
            config.templates or InMemoryTemplateStore(),
            config.repository or InMemoryRunRepository(),
            record_store=config.record_store,
            text_generator=config.text_generator,
            notifier=config.notifier,
            webhook_client=config.webhook_client,
            config=config.runner_config,
        )

        def provide_runner() -> Runner:
            return self._runner  # type: ignore[return-value]

        def provide_templates() -> TemplateStore:
            return self._runner.templates  # type: ignore[union-attr]

        app_config.dependencies[config.dependency_key_runner] = Provide(provide_runner, sync_to_thread=False)
        app_config.dependencies[config.dependency_key_templates] = Provide(provide_templates, sync_to_thread=False)

        app_config.on_startup.append(self._on_startup)
        app_config.on_shutdown.append(self._on_shutdown)

        if config.enable_api:
            from litestar import Router

            from process_pilot.web.controllers import RunController, TemplateController

            automation_router = Router(
                path=config.api_path_prefix,
                route_handlers=[TemplateController, RunController],
                guards=config.api_guards,
                tags=config.api_tags,
                include_in_schema=config.include_api_in_schema,
            )
            app_config.route_handlers.append(automation_router)

        return app_config

    async def _on_startup(self) -> None:
        if self._config.start_monitor:
            monitor = self.runner.monitor()
            self._monitor_task = asyncio.create_task(monitor.run_forever(self.runner.config.monitor_interval))
            logger.info("run_monitor_started", interval_s=self.runner.config.monitor_interval.total_seconds())
        if self._config.start_performance_review:
            interval = self.runner.config.performance_review_interval
            self._review_task = asyncio.create_task(self.runner.review_performance_forever(interval))
            logger.info("performance_review_started", interval_s=interval.total_seconds())

    async def _on_shutdown(self) -> None:
        for task in (self._monitor_task, self._review_task):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._monitor_task = None
        self._review_task = None
        await self.runner.drain()
