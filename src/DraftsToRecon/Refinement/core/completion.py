# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.core.completion",
#   "purpose": "Completion registry derived from refined artifacts already on disk.",
#   "sections": [
#     {
#       "id": "load-completed",
#       "name": "load_completed",
#       "anchor": "function-load-completed",
#       "kind": "function"
#     },
#     {
#       "id": "filter-pending",
#       "name": "filter_pending",
#       "anchor": "function-filter-pending",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Completion registry derived from refined artifacts already on disk.

The refined-output folder itself is the record of what has finished: an
artifact named ``<canonical_id><suffix>`` exists only once the coordinator
wrote it after a chunk barrier. Rerunning the pipeline therefore only needs to
list that folder to know which items to skip.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .discovery import InputItem

__all__ = ["REFINED_SUFFIX", "filter_pending", "load_completed"]

REFINED_SUFFIX = ".mat"


def load_completed(output_dir: Path, suffix: str = REFINED_SUFFIX) -> frozenset[str]:
    """Return canonical IDs that already have a refined artifact in ``output_dir``."""

    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        return frozenset()
    completed: set[str] = set()
    for entry in output_dir.iterdir():
        name = entry.name
        if not name.endswith(suffix) or len(name) == len(suffix):
            continue
        if not entry.is_file():
            continue
        completed.add(name[: -len(suffix)])
    return frozenset(completed)


def filter_pending(items: Iterable[InputItem], completed: Iterable[str]) -> list[InputItem]:
    """Drop items whose canonical ID is already complete, preserving order."""

    done = completed if isinstance(completed, (set, frozenset)) else frozenset(completed)
    return [item for item in items if item.canonical_id not in done]
