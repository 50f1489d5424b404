"""Tests for the JSON log formatter."""

import logging

import orjson

from memory_cache.core.logging import JsonFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "memory_cache.test", logging.WARNING, __file__, 1, "cache.lookup %s", ("returned miss",), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_context_extras_are_nested_without_prefix() -> None:
    payload = orjson.loads(
        JsonFormatter().format(_record(ctx_component="cache.lookup", ctx_error="store_unavailable", ctx_owner=None))
    )
    assert payload["message"] == "cache.lookup returned miss"
    assert payload["level"] == "WARNING"
    assert payload["context"] == {"component": "cache.lookup", "error": "store_unavailable"}


def test_plain_record_has_no_context() -> None:
    payload = orjson.loads(JsonFormatter().format(_record()))
    assert "context" not in payload
    assert payload["name"] == "memory_cache.test"
