# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.io",
#   "purpose": "Atomic file writes and JSONL manifest helpers for the refinement engine.",
#   "sections": [
#     {
#       "id": "atomic-write",
#       "name": "atomic_write",
#       "anchor": "function-atomic-write",
#       "kind": "function"
#     },
#     {
#       "id": "locked",
#       "name": "locked",
#       "anchor": "function-locked",
#       "kind": "function"
#     },
#     {
#       "id": "jsonl-append",
#       "name": "jsonl_append",
#       "anchor": "function-jsonl-append",
#       "kind": "function"
#     },
#     {
#       "id": "iter-jsonl",
#       "name": "iter_jsonl",
#       "anchor": "function-iter-jsonl",
#       "kind": "function"
#     },
#     {
#       "id": "manifest-append",
#       "name": "manifest_append",
#       "anchor": "function-manifest-append",
#       "kind": "function"
#     },
#     {
#       "id": "load-manifest-index",
#       "name": "load_manifest_index",
#       "anchor": "function-load-manifest-index",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Atomic file writes and JSONL manifest helpers for the refinement engine.

Checkpoints and reports are rewritten wholesale, so every write goes through
:func:`atomic_write`: a crash mid-write leaves the previous file intact rather
than a truncated one. The run manifest is an append-only JSONL log keyed by
canonical ID; :func:`load_manifest_index` collapses it to the latest entry per
item.
"""

from __future__ import annotations

import contextlib
import json
import os
import uuid
from collections.abc import Iterable, Iterator, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import TextIO

import jsonlines
from filelock import FileLock, Timeout

__all__ = [
    "MANIFEST_STATUSES",
    "atomic_write",
    "iter_jsonl",
    "jsonl_append",
    "load_manifest_index",
    "locked",
    "manifest_append",
    "resolve_manifest_path",
]

MANIFEST_STATUSES = frozenset({"success", "failure"})


@contextlib.contextmanager
def atomic_write(path: Path) -> Iterator[TextIO]:
    """Write to a temporary file and atomically replace the destination."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp.{uuid.uuid4().hex}")
    try:
        with tmp.open("w", encoding="utf-8", newline="") as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        tmp.replace(path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


@contextlib.contextmanager
def locked(path: Path, timeout_s: float = 120.0) -> Iterator[FileLock]:
    """Hold the ``<path>.lock`` sentinel for the duration of the block."""

    lock_path = Path(f"{path}.lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_path))
    try:
        lock.acquire(timeout=timeout_s)
    except Timeout as exc:
        raise TimeoutError(
            f"Timed out acquiring lock {lock_path} after {timeout_s}s. "
            "Another refinement run may be writing to the same summary folder."
        ) from exc
    try:
        yield lock
    finally:
        lock.release()


def jsonl_append(path: Path, rows: Iterable[Mapping]) -> int:
    """Append ``rows`` to the JSONL file at ``path`` and return the count."""

    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with jsonlines.open(path, mode="a", dumps=lambda obj: json.dumps(obj, default=str)) as writer:
        for row in rows:
            writer.write(dict(row))
            count += 1
    return count


def iter_jsonl(path: Path, *, skip_invalid: bool = True) -> Iterator[dict]:
    """Stream JSONL records from ``path``; malformed lines are skipped by default."""

    if not path.exists():
        return
    with jsonlines.open(path, mode="r") as reader:
        for record in reader.iter(type=dict, skip_invalid=skip_invalid, skip_empty=True):
            yield record


def resolve_manifest_path(summary_dir: Path, version: str) -> Path:
    """Return the run manifest path for ``version`` under ``summary_dir``."""

    return summary_dir / f"refinement.{version}.manifest.jsonl"


def manifest_append(
    manifest_path: Path,
    item_id: str,
    status: str,
    *,
    duration_s: float = 0.0,
    error: str | None = None,
    **metadata: object,
) -> None:
    """Append a structured entry to the run manifest."""

    if status not in MANIFEST_STATUSES:
        raise ValueError(f"status must be one of {sorted(MANIFEST_STATUSES)}")

    entry: dict[str, object] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "item_id": item_id,
        "status": status,
        "duration_s": round(duration_s, 3),
    }
    if error is not None:
        entry["error"] = str(error)
    entry.update(metadata)
    jsonl_append(manifest_path, [entry])


def load_manifest_index(manifest_path: Path) -> dict[str, dict]:
    """Return the latest manifest entry per item for ``manifest_path``."""

    index: dict[str, dict] = {}
    for entry in iter_jsonl(manifest_path):
        item_id = entry.get("item_id")
        if not item_id:
            continue
        index[str(item_id)] = entry
    return index
