"""Atomic writes, the JSONL run manifest and structured logging."""

from __future__ import annotations

import io
import json
import logging

import pytest

from DraftsToRecon.Refinement.io import (
    atomic_write,
    iter_jsonl,
    jsonl_append,
    load_manifest_index,
    locked,
    manifest_append,
    resolve_manifest_path,
)
from DraftsToRecon.Refinement.logging import (
    ConsoleFormatter,
    JSONFormatter,
    configure_logging,
    get_logger,
    log_event,
)


def test_atomic_write_replaces_destination(tmp_path):
    target = tmp_path / "nested" / "report.tsv"
    with atomic_write(target) as handle:
        handle.write("a\tb\n")
    assert target.read_text(encoding="utf-8") == "a\tb\n"
    assert [p.name for p in target.parent.iterdir()] == ["report.tsv"]


def test_atomic_write_failure_keeps_previous_content(tmp_path):
    target = tmp_path / "report.tsv"
    target.write_text("old", encoding="utf-8")

    with pytest.raises(RuntimeError):
        with atomic_write(target) as handle:
            handle.write("partial")
            raise RuntimeError("boom")

    assert target.read_text(encoding="utf-8") == "old"
    assert [p.name for p in tmp_path.iterdir()] == ["report.tsv"]


def test_locked_creates_sentinel(tmp_path):
    target = tmp_path / "sub" / "summaries.json"
    with locked(target):
        assert (tmp_path / "sub" / "summaries.json.lock").exists()


def test_manifest_latest_entry_wins(tmp_path):
    manifest = resolve_manifest_path(tmp_path, "v1")
    assert manifest.name == "refinement.v1.manifest.jsonl"

    manifest_append(manifest, "a", "failure", error="refiner failed", chunk=0)
    manifest_append(manifest, "b", "success", duration_s=1.23456, chunk=0)
    manifest_append(manifest, "a", "success", chunk=1)

    index = load_manifest_index(manifest)
    assert set(index) == {"a", "b"}
    assert index["a"]["status"] == "success"
    assert index["a"]["chunk"] == 1
    assert index["b"]["duration_s"] == 1.235
    assert "error" not in index["b"]


def test_manifest_rejects_unknown_status(tmp_path):
    with pytest.raises(ValueError):
        manifest_append(tmp_path / "m.jsonl", "a", "skipped")


def test_iter_jsonl_skips_malformed_lines(tmp_path):
    path = tmp_path / "rows.jsonl"
    jsonl_append(path, [{"a": 1}])
    with path.open("a", encoding="utf-8") as handle:
        handle.write("{broken\n\n")
    jsonl_append(path, [{"a": 2}])

    assert [row["a"] for row in iter_jsonl(path)] == [1, 2]
    assert list(iter_jsonl(tmp_path / "missing.jsonl")) == []


def _record(**fields) -> logging.LogRecord:
    record = logging.LogRecord("DraftsToRecon.test", logging.INFO, __file__, 1, "hello", None, None)
    record.extra_fields = fields
    return record


def test_json_formatter_flattens_fields():
    payload = json.loads(JSONFormatter().format(_record(stage="refine", chunk=2)))
    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["stage"] == "refine"
    assert payload["chunk"] == 2
    assert payload["timestamp"].endswith("Z")


def test_console_formatter_appends_fields():
    line = ConsoleFormatter().format(_record(item_id="m1"))
    assert line.endswith("hello | item_id=m1")


def test_log_event_fills_error_fields():
    stream = io.StringIO()
    root = configure_logging("DEBUG", "json")
    root.handlers[0].setStream(stream)
    logger = get_logger("DraftsToRecon.tests.logging", base_fields={"stage": "checkpoint"})

    log_event(logger, "warning", "something odd", error_code="checkpoint_io")
    log_event(logger, "info", "all good", items=3)

    first, second = (json.loads(line) for line in stream.getvalue().splitlines())
    assert first["stage"] == "checkpoint"
    assert first["item_id"] == "unknown"
    assert first["error_code"] == "CHECKPOINT_IO"
    assert second["stage"] == "checkpoint"
    assert second["items"] == 3


def test_get_logger_is_cached_and_binds():
    first = get_logger("DraftsToRecon.tests.cache", base_fields={"stage": "a"})
    second = get_logger("DraftsToRecon.tests.cache", base_fields={"run": "r1"})
    assert first is second
    assert second.base_fields == {"stage": "a", "run": "r1"}
    child = second.child(chunk=1)
    assert child is not second
    assert child.base_fields["chunk"] == 1
    assert "chunk" not in second.base_fields


def test_log_event_rejects_unknown_level():
    with pytest.raises(AttributeError):
        log_event(get_logger("DraftsToRecon.tests.level"), "loud", "nope")
