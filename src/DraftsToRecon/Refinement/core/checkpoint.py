# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.core.checkpoint",
#   "purpose": "Versioned whole-registry checkpoints for resumable refinement runs.",
#   "sections": [
#     {
#       "id": "checkpointstore",
#       "name": "CheckpointStore",
#       "anchor": "class-checkpointstore",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Versioned whole-registry checkpoints for resumable refinement runs.

A checkpoint is a complete JSON snapshot of the :class:`SummaryRegistry`
stored as ``summaries_<version>.json`` in the summary folder. The scheduler
rewrites it after every chunk, so a crash loses at most the chunk that was in
flight. A missing file means "start fresh"; a file that exists but cannot be
parsed is an error, because silently starting over would throw away every
diagnostic accumulated by earlier runs.
"""

from __future__ import annotations

import json
from pathlib import Path

from DraftsToRecon.Refinement.errors import AggregationError, CheckpointIOError
from DraftsToRecon.Refinement.io import atomic_write, locked
from DraftsToRecon.Refinement.logging import get_logger, log_event

from .models import SummaryRegistry

__all__ = ["CHECKPOINT_SUFFIX", "CheckpointStore"]

CHECKPOINT_SUFFIX = ".json"
CHECKPOINT_FORMAT = 1


class CheckpointStore:
    """Load and persist the summary registry under a named resource version."""

    def __init__(self, summary_dir: Path, version_name: str) -> None:
        if not version_name:
            raise ValueError("version_name must be a non-empty string")
        self.summary_dir = Path(summary_dir)
        self.version_name = version_name
        self._logger = get_logger(__name__, base_fields={"stage": "checkpoint"})

    @property
    def path(self) -> Path:
        return self.summary_dir / f"summaries_{self.version_name}{CHECKPOINT_SUFFIX}"

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> SummaryRegistry:
        """Return the persisted registry, or an empty one when none exists."""

        path = self.path
        if not path.exists():
            return SummaryRegistry()
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CheckpointIOError(f"Unable to read checkpoint {path}: {exc}") from exc

        if isinstance(raw, dict) and "summaries" in raw:
            payload = raw["summaries"]
        else:
            payload = raw
        if not isinstance(payload, dict):
            raise CheckpointIOError(
                f"Checkpoint {path} does not contain a summary mapping "
                f"(found {type(payload).__name__})"
            )
        try:
            registry = SummaryRegistry.from_payload(payload)
        except AggregationError as exc:
            raise CheckpointIOError(f"Checkpoint {path} is malformed: {exc}") from exc

        log_event(
            self._logger,
            "info",
            "checkpoint loaded",
            version=self.version_name,
            path=str(path),
            items=len(registry),
        )
        return registry

    def save(self, registry: SummaryRegistry) -> Path:
        """Overwrite the checkpoint with the full contents of ``registry``."""

        path = self.path
        document = {
            "format": CHECKPOINT_FORMAT,
            "version": self.version_name,
            "summaries": registry.to_payload(),
        }
        try:
            with locked(path):
                with atomic_write(path) as handle:
                    json.dump(document, handle, indent=1, sort_keys=False)
                    handle.write("\n")
        except (OSError, TimeoutError, TypeError, ValueError) as exc:
            raise CheckpointIOError(f"Unable to write checkpoint {path}: {exc}") from exc

        log_event(
            self._logger,
            "debug",
            "checkpoint saved",
            version=self.version_name,
            path=str(path),
            items=len(registry),
        )
        return path
