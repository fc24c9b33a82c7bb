"""Template stores and run repositories that need no database."""

from __future__ import annotations

from process_pilot.stores.memory import InMemoryRunRepository, InMemoryTemplateStore

__all__ = ["InMemoryRunRepository", "InMemoryTemplateStore"]
