"""Shared test fixtures for the process-pilot test suite."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import pytest

from process_pilot.core.models import WebhookResponse

if TYPE_CHECKING:
    from process_pilot.engine.runner import Runner
    from process_pilot.steps.base import StepServices
    from process_pilot.stores.memory import InMemoryRunRepository, InMemoryTemplateStore


EPOCH = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that never really sleeps; each sleep advances ``now``."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self.current = start
        self.sleeps: list[int] = []

    async def sleep(self, duration_ms: int) -> None:
        self.sleeps.append(duration_ms)
        self.current += timedelta(milliseconds=duration_ms)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class FakeRecordStore:
    """Record store backed by lists of dicts, with per-table failure injection."""

    def __init__(self, tables: Mapping[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {name: list(rows) for name, rows in (tables or {}).items()}
        self.fail_tables: dict[str, str] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self._next_id = 0

    def _maybe_fail(self, table: str) -> None:
        if table in self.fail_tables:
            raise RuntimeError(self.fail_tables[table])

    async def fetch(self, table: str, filter: str) -> list[dict[str, Any]]:
        self.calls.append(("fetch", table, filter))
        self._maybe_fail(table)
        return [dict(row) for row in self.tables.get(table, [])]

    async def create(self, table: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append(("create", table, dict(fields)))
        self._maybe_fail(table)
        self._next_id += 1
        record = {"id": f"rec{self._next_id}", **fields}
        self.tables.setdefault(table, []).append(record)
        return record

    async def update(self, table: str, record_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append(("update", table, {"id": record_id, **fields}))
        self._maybe_fail(table)
        for row in self.tables.get(table, []):
            if row.get("id") == record_id:
                row.update(fields)
                return dict(row)
        return {"id": record_id, **fields}


class FakeTextGenerator:
    """Text generator returning canned answers; ``failures`` makes the next N calls raise."""

    def __init__(self, json_answer: Any = None, text_answer: str = "generated text") -> None:
        self.json_answer = {"score": 8} if json_answer is None else json_answer
        self.text_answer = text_answer
        self.failures = 0
        self.error = "rate limited"
        self.calls: list[dict[str, Any]] = []

    def _record(self, mode: str, prompt: str, model: str, max_tokens: int) -> None:
        self.calls.append({"mode": mode, "prompt": prompt, "model": model, "max_tokens": max_tokens})
        if self.failures:
            self.failures -= 1
            raise RuntimeError(self.error)

    async def generate_text(self, prompt: str, *, model: str, max_tokens: int) -> str:
        self._record("text", prompt, model, max_tokens)
        return self.text_answer

    async def generate_json(self, prompt: str, *, model: str, max_tokens: int) -> Any:
        self._record("json", prompt, model, max_tokens)
        return self.json_answer


class FakeNotifier:
    """Notifier collecting ``(subject, html)`` pairs."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send(self, subject: str, html: str) -> None:
        if self.fail:
            msg = "smtp unavailable"
            raise ConnectionError(msg)
        self.sent.append((subject, html))

    @property
    def subjects(self) -> list[str]:
        return [subject for subject, _ in self.sent]


class FakeWebhookClient:
    """Webhook client recording calls and returning a fixed response."""

    def __init__(self, response: WebhookResponse | None = None) -> None:
        self.response = response or WebhookResponse(status_code=200, body={"ok": True})
        self.calls: list[dict[str, Any]] = []

    async def call(
        self,
        url: str,
        method: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> WebhookResponse:
        self.calls.append({"url": url, "method": method, "payload": dict(payload), "headers": dict(headers)})
        return self.response


class FailingRunRepository:
    """Run repository whose writes always fail."""

    def __init__(self) -> None:
        self.attempts = 0

    async def save(self, run: Any) -> None:
        from process_pilot.exceptions import PersistenceError

        self.attempts += 1
        raise PersistenceError("save run")

    async def get(self, run_id: Any) -> Any:
        from process_pilot.exceptions import RunNotFoundError

        raise RunNotFoundError(run_id)

    async def history(self, workflow_name: str | None = None, limit: int = 50, since: Any = None) -> list[Any]:
        return []

    async def record_error(self, record: Any) -> None:
        from process_pilot.exceptions import PersistenceError

        raise PersistenceError("record error")

    async def errors(self, workflow_name: str | None = None, limit: int = 50) -> list[Any]:
        return []


LEAD_INTAKE: dict[str, Any] = {
    "retry": True,
    "maxRetries": 2,
    "steps": [
        {"name": "fetch_leads", "kind": "fetch_records", "table": "Leads", "contextKey": "leads"},
        {"name": "score_lead", "kind": "ai_classify", "prompt": "Score {{leads}}", "contextKey": "score"},
        {"name": "notify_sales", "kind": "notify", "subject": "New lead", "html": "{{score}}", "required": False},
    ],
}
"""Fetch, classify, notify; retried twice."""


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def record_store() -> FakeRecordStore:
    return FakeRecordStore({"Leads": [{"id": "L1", "email": "anna@example.ch"}]})


@pytest.fixture
def text_generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def webhook_client() -> FakeWebhookClient:
    return FakeWebhookClient()


@pytest.fixture
def services(
    clock: FakeClock,
    record_store: FakeRecordStore,
    text_generator: FakeTextGenerator,
    notifier: FakeNotifier,
    webhook_client: FakeWebhookClient,
) -> StepServices:
    """Step services wired to the fake collaborators."""
    from process_pilot.config import RunnerConfig
    from process_pilot.steps.base import StepServices

    return StepServices(
        clock=clock,
        config=RunnerConfig(),
        record_store=record_store,
        text_generator=text_generator,
        notifier=notifier,
        webhook_client=webhook_client,
    )


@pytest.fixture
def template_store() -> InMemoryTemplateStore:
    """Empty in-memory template store."""
    from process_pilot.stores.memory import InMemoryTemplateStore

    return InMemoryTemplateStore()


@pytest.fixture
def run_repository() -> InMemoryRunRepository:
    """Empty in-memory run repository."""
    from process_pilot.stores.memory import InMemoryRunRepository

    return InMemoryRunRepository()


@pytest.fixture
def runner(
    template_store: InMemoryTemplateStore,
    run_repository: InMemoryRunRepository,
    clock: FakeClock,
    record_store: FakeRecordStore,
    text_generator: FakeTextGenerator,
    notifier: FakeNotifier,
    webhook_client: FakeWebhookClient,
) -> Runner:
    """Runner wired to in-memory stores and fake collaborators."""
    from process_pilot.engine.runner import Runner

    return Runner(
        template_store,
        run_repository,
        record_store=record_store,
        text_generator=text_generator,
        notifier=notifier,
        webhook_client=webhook_client,
        clock=clock,
    )


@pytest.fixture
def lead_intake() -> dict[str, Any]:
    """A fresh copy of the lead-intake template document."""
    import copy

    return copy.deepcopy(LEAD_INTAKE)


@pytest.fixture
def failing_repository() -> FailingRunRepository:
    return FailingRunRepository()
