# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.core.manifest",
#   "purpose": "Auto-generated item information file for runs without curated metadata.",
#   "sections": [
#     {
#       "id": "write-item-info",
#       "name": "write_item_info",
#       "anchor": "function-write-item-info",
#       "kind": "function"
#     },
#     {
#       "id": "read-item-info",
#       "name": "read_item_info",
#       "anchor": "function-read-item-info",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Auto-generated item information file for runs without curated metadata.

Refiners expect a tab-separated information file whose first column,
``MicrobeID``, lists the reconstructions being refined (curated files carry
taxonomy and other columns as well). When the caller does not supply one, the
pipeline writes a minimal file listing every discovered canonical ID.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable
from pathlib import Path

from DraftsToRecon.Refinement.io import atomic_write

from .discovery import InputItem

__all__ = ["INFO_FILE_NAME", "INFO_ID_COLUMN", "read_item_info", "write_item_info"]

INFO_FILE_NAME = "infoFile.tsv"
INFO_ID_COLUMN = "MicrobeID"


def write_item_info(items: Iterable[InputItem], path: Path) -> Path:
    """Write one ``MicrobeID`` row per item (scan order) to ``path``."""

    with atomic_write(path) as handle:
        writer = csv.writer(handle, delimiter="\t", lineterminator="\n")
        writer.writerow([INFO_ID_COLUMN])
        writer.writerows([item.canonical_id] for item in items)
    return path


def read_item_info(path: Path) -> list[str]:
    """Return the ``MicrobeID`` column of an information file."""

    with path.open("r", encoding="utf-8", newline="") as handle:
        reader = csv.DictReader(handle, delimiter="\t")
        if reader.fieldnames is None or INFO_ID_COLUMN not in reader.fieldnames:
            raise ValueError(f"{path} has no '{INFO_ID_COLUMN}' column")
        return [row[INFO_ID_COLUMN] for row in reader if row.get(INFO_ID_COLUMN)]
