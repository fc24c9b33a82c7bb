"""Tests for RunContext and placeholder interpolation."""

from __future__ import annotations

import pytest


@pytest.mark.unit
class TestRunContext:
    """Tests for the RunContext key/value store."""

    def test_get_and_set(self) -> None:
        """Test reading and writing context keys."""
        from process_pilot.core.context import RunContext

        ctx = RunContext({"region": "ZH"})
        ctx.set("score", 7)

        assert ctx.get("region") == "ZH"
        assert ctx.get("score") == 7
        assert ctx.get("missing") is None
        assert ctx.get("missing", "fallback") == "fallback"

    def test_set_overwrites(self) -> None:
        """Test that setting an existing key overwrites it."""
        from process_pilot.core.context import RunContext

        ctx = RunContext({"score": 1})
        ctx.set("score", 2)

        assert ctx.get("score") == 2
        assert len(ctx) == 1

    def test_initial_mapping_is_copied(self) -> None:
        """Test that the initial mapping is copied, not shared."""
        from process_pilot.core.context import RunContext

        data = {"a": 1}
        ctx = RunContext(data)
        ctx.set("b", 2)

        assert "b" not in data

    def test_lookup_dotted_path(self) -> None:
        """Test looking up a dotted path into nested values."""
        from process_pilot.core.context import RunContext

        ctx = RunContext({"lead": {"address": {"city": "Bern"}, "tags": ["vip", "b2b"]}})

        assert ctx.lookup("lead.address.city") == "Bern"
        assert ctx.lookup("lead.tags.1") == "b2b"
        assert ctx.lookup("lead.tags.5") is None
        assert ctx.lookup("lead.phone", "n/a") == "n/a"

    def test_lookup_prefers_literal_dotted_key(self) -> None:
        """Test that a literal dotted key wins over path traversal."""
        from process_pilot.core.context import RunContext

        ctx = RunContext({"a.b": "literal", "a": {"b": "nested"}})

        assert ctx.lookup("a.b") == "literal"

    def test_to_dict_is_deep_copy(self) -> None:
        """Test that to_dict returns a deep copy."""
        from process_pilot.core.context import RunContext

        ctx = RunContext({"lead": {"email": "a@b.ch"}})
        snapshot = ctx.to_dict()
        snapshot["lead"]["email"] = "changed"

        assert ctx.lookup("lead.email") == "a@b.ch"

    def test_equality_with_mapping(self) -> None:
        """Test comparing a context with a plain mapping."""
        from process_pilot.core.context import RunContext

        assert RunContext({"a": 1}) == {"a": 1}
        assert RunContext({"a": 1}) == RunContext({"a": 1})
        assert RunContext({"a": 1}) != RunContext({"a": 2})

    def test_deepcopy_is_independent(self) -> None:
        """Test that a deep-copied context is independent."""
        import copy

        from process_pilot.core.context import RunContext

        ctx = RunContext({"items": [1]})
        clone = copy.deepcopy(ctx)
        clone.lookup("items").append(2)

        assert ctx.get("items") == [1]

    def test_iteration_and_contains(self) -> None:
        """Test iterating over a context and membership checks."""
        from process_pilot.core.context import RunContext

        ctx = RunContext({"a": 1, "b": 2})

        assert set(ctx) == {"a", "b"}
        assert "a" in ctx
        assert "c" not in ctx


@pytest.mark.unit
class TestResolveTemplate:
    """Tests for string interpolation."""

    def test_replaces_known_keys(self) -> None:
        """Test placeholder substitution for known keys."""
        from process_pilot.core.context import RunContext, resolve_template

        ctx = RunContext({"name": "Anna", "lead": {"city": "Bern"}})

        assert resolve_template("Hi {{name}} from {{lead.city}}", ctx) == "Hi Anna from Bern"

    def test_unknown_and_none_keys_stay(self) -> None:
        """Test that unknown and None-valued placeholders are left as is."""
        from process_pilot.core.context import RunContext, resolve_template

        ctx = RunContext({"empty": None})

        assert resolve_template("{{missing}} and {{empty}}", ctx) == "{{missing}} and {{empty}}"

    def test_structured_values_render_as_json(self) -> None:
        """Test that dicts and lists render as JSON inside text."""
        from process_pilot.core.context import RunContext, resolve_template

        ctx = RunContext({"score": {"value": 8}, "tags": ["a"]})

        assert resolve_template("{{score}} {{tags}}", ctx) == '{"value": 8} ["a"]'

    def test_non_string_returned_unchanged(self) -> None:
        """Test that non-string values pass through unchanged."""
        from process_pilot.core.context import RunContext, resolve_template

        ctx = RunContext({})

        assert resolve_template(42, ctx) == 42
        assert resolve_template(None, ctx) is None

    def test_numbers_are_stringified(self) -> None:
        """Test that numbers inside text are stringified."""
        from process_pilot.core.context import RunContext, resolve_template

        assert resolve_template("score={{score}}", RunContext({"score": 7})) == "score=7"


@pytest.mark.unit
class TestResolveFields:
    """Tests for interpolation of nested field structures."""

    def test_none_becomes_empty_mapping(self) -> None:
        """Test that resolving None fields yields an empty mapping."""
        from process_pilot.core.context import RunContext, resolve_fields

        assert resolve_fields(None, RunContext({})) == {}

    def test_whole_placeholder_keeps_raw_value(self) -> None:
        """Test that a value made of one placeholder keeps the raw type."""
        from process_pilot.core.context import RunContext, resolve_fields

        ctx = RunContext({"lead": {"email": "a@b.ch"}, "score": 9})

        resolved = resolve_fields({"lead": "{{lead}}", "score": "{{score}}", "note": "score {{score}}"}, ctx)

        assert resolved == {"lead": {"email": "a@b.ch"}, "score": 9, "note": "score 9"}

    def test_nested_structures(self) -> None:
        """Test resolving placeholders inside nested structures."""
        from process_pilot.core.context import RunContext, resolve_fields

        ctx = RunContext({"city": "Bern"})

        resolved = resolve_fields({"address": {"city": "{{city}}"}, "tags": ["{{city}}", 1], "empty": None}, ctx)

        assert resolved == {"address": {"city": "Bern"}, "tags": ["Bern", 1], "empty": None}

    def test_source_fields_untouched(self) -> None:
        """Test that resolving fields leaves the source untouched."""
        from process_pilot.core.context import RunContext, resolve_fields

        fields = {"city": "{{city}}"}
        resolve_fields(fields, RunContext({"city": "Bern"}))

        assert fields == {"city": "{{city}}"}
