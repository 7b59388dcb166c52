"""Tests for the handle-based host boundary."""

import json

import pytest

from summon.engine import boundary
from summon.engine.errors import BufferReleasedError, EncodingError, InvalidHandleError
from summon.engine.models import ItemType


@pytest.fixture(autouse=True)
def fresh_registry():
    boundary.reset_default_registry()
    yield
    boundary.reset_default_registry()


@pytest.fixture
def engine():
    handle = boundary.search_engine_new()
    assert boundary.search_engine_add_item(handle, "1", "Calculator", "/Applications/Calculator.app", 0)
    assert boundary.search_engine_add_item(handle, "2", "calc.txt", "/docs/calc.txt", 1)
    return handle


@pytest.fixture
def snippets():
    handle = boundary.snippet_matcher_new()
    payload = json.dumps([
        {"trigger": "br", "content": "A"},
        {"trigger": "brb", "content": "B"},
    ])
    assert boundary.snippet_matcher_update(handle, payload)
    return handle


class TestSearchEngine:
    """Test the search functions exposed to the host."""

    def test_search_returns_owned_buffer(self, engine):
        buffer = boundary.search_engine_search(engine, "calc", 10)
        assert buffer.count >= 2
        assert [r.id for r in buffer][:2] == ["1", "2"]
        assert buffer[0].item_type is ItemType.APPLICATION
        boundary.search_results_free(buffer)
        assert buffer.released

    def test_buffer_unusable_after_release(self, engine):
        buffer = boundary.search_engine_search(engine, "calc", 10)
        boundary.search_results_free(buffer)
        with pytest.raises(BufferReleasedError):
            buffer.results
        with pytest.raises(BufferReleasedError):
            len(buffer)

    def test_double_release_detected(self, engine):
        buffer = boundary.search_engine_search(engine, "calc", 10)
        boundary.search_results_free(buffer)
        with pytest.raises(BufferReleasedError):
            boundary.search_results_free(buffer)

    def test_buffer_is_a_snapshot(self, engine):
        buffer = boundary.search_engine_search(engine, "calc", 10)
        count = buffer.count
        boundary.search_engine_add_item(engine, "3", "Calc Pro", "", 0)
        assert buffer.count == count

    def test_empty_query_gives_empty_buffer(self, engine):
        buffer = boundary.search_engine_search(engine, "", 10)
        assert buffer is not None
        assert buffer.count == 0

    def test_negative_limit_treated_as_zero(self, engine):
        assert boundary.search_engine_search(engine, "calc", -1).count == 0

    def test_bytes_arguments(self, engine):
        assert boundary.search_engine_add_item(engine, b"3", "Café".encode("utf-8"), b"", 2)
        buffer = boundary.search_engine_search(engine, b"cafe", 5)
        assert [r.name for r in buffer] == ["Café"]

    def test_invalid_utf8_rejected(self, engine):
        assert not boundary.search_engine_add_item(engine, b"3", b"\xff", b"", 0)
        assert boundary.search_engine_search(engine, b"\xc3", 5) is None
        assert boundary.search_engine_stats(engine) == (2, 1, 1, 0)

    def test_invalid_type_tag_rejected(self, engine):
        assert not boundary.search_engine_add_item(engine, "3", "x", "", 7)
        assert boundary.search_engine_stats(engine) == (2, 1, 1, 0)

    def test_non_int_limit_rejected(self, engine):
        assert boundary.search_engine_search(engine, "calc", "10") is None

    def test_stats_tuple(self, engine):
        boundary.search_engine_add_item(engine, "3", "clip", "", 3)
        boundary.search_engine_add_item(engine, "4", "sig", "", 2)
        # clipboard entries count toward the total only
        assert boundary.search_engine_stats(engine) == (4, 1, 1, 1)

    def test_unknown_handle(self):
        assert not boundary.search_engine_add_item(999, "1", "x", "", 0)
        assert boundary.search_engine_search(999, "x", 10) is None
        assert boundary.search_engine_stats(999) is None

    def test_freed_handle(self, engine):
        boundary.search_engine_free(engine)
        assert boundary.search_engine_search(engine, "calc", 10) is None
        # a second free is ignored
        boundary.search_engine_free(engine)

    def test_handles_are_not_reused(self, engine):
        boundary.search_engine_free(engine)
        assert boundary.search_engine_new() != engine

    def test_handle_kind_checked(self, snippets):
        assert boundary.search_engine_search(snippets, "x", 10) is None


class TestSnippetMatcher:
    """Test the trigger functions exposed to the host."""

    def test_find(self, snippets):
        match = boundary.snippet_matcher_find(snippets, "ok brb")
        assert (match.trigger, match.content, match.match_end) == ("brb", "B", 6)
        boundary.snippet_match_free(match)
        assert match.released

    def test_match_unusable_after_release(self, snippets):
        match = boundary.snippet_matcher_find(snippets, "ok br")
        boundary.snippet_match_free(match)
        with pytest.raises(BufferReleasedError):
            match.content
        with pytest.raises(BufferReleasedError):
            boundary.snippet_match_free(match)

    def test_no_match(self, snippets):
        assert boundary.snippet_matcher_find(snippets, "nothing") is None

    def test_failed_update_keeps_rules(self, snippets):
        assert not boundary.snippet_matcher_update(snippets, "not json")
        assert not boundary.snippet_matcher_update(snippets, b"\xff")
        assert not boundary.snippet_matcher_update(snippets, "[" * 100000)
        assert boundary.snippet_matcher_find(snippets, "ok brb").content == "B"

    def test_unknown_handle(self):
        assert not boundary.snippet_matcher_update(999, "[]")
        assert boundary.snippet_matcher_find(999, "x") is None

    def test_free(self, snippets):
        boundary.snippet_matcher_free(snippets)
        assert boundary.snippet_matcher_find(snippets, "ok brb") is None


class TestHandleRegistry:
    """Test the registry directly."""

    def test_register_get_release(self):
        registry = boundary.HandleRegistry()
        handle = registry.register("engine")
        assert registry.get(handle, str) == "engine"
        assert len(registry) == 1
        assert registry.release(handle)
        assert not registry.release(handle)
        with pytest.raises(InvalidHandleError):
            registry.get(handle, str)

    def test_decode_string(self):
        assert boundary.decode_string(b"abc", "query") == "abc"
        with pytest.raises(EncodingError):
            boundary.decode_string(b"\xff", "query")
        with pytest.raises(EncodingError):
            boundary.decode_string(None, "query")
