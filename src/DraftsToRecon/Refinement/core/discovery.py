# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.core.discovery",
#   "purpose": "Filesystem discovery of draft reconstructions with canonical-ID dedup.",
#   "sections": [
#     {
#       "id": "inputitem",
#       "name": "InputItem",
#       "anchor": "class-inputitem",
#       "kind": "class"
#     },
#     {
#       "id": "is-os-metadata",
#       "name": "is_os_metadata",
#       "anchor": "function-is-os-metadata",
#       "kind": "function"
#     },
#     {
#       "id": "iter-model-files",
#       "name": "iter_model_files",
#       "anchor": "function-iter-model-files",
#       "kind": "function"
#     },
#     {
#       "id": "scan",
#       "name": "scan",
#       "anchor": "function-scan",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Filesystem discovery of draft reconstructions with canonical-ID dedup.

The enumerator walks the source tree depth-first, visiting directory entries
in sorted name order. That order is the "scan order" that decides which file
wins when two raw names normalise to the same canonical ID, so it has to be
reproducible independent of the filesystem's native listing order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from DraftsToRecon.Refinement.errors import InputDiscoveryError

from .ids import ModelFormat, derive_canonical_id, detect_model_format

__all__ = [
    "OS_METADATA_NAMES",
    "InputItem",
    "is_os_metadata",
    "iter_model_files",
    "scan",
]

OS_METADATA_NAMES = frozenset({".DS_Store", "Thumbs.db", "desktop.ini"})

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class InputItem:
    """One draft reconstruction selected for refinement."""

    raw_name: str
    source_dir: Path
    canonical_id: str
    model_format: ModelFormat

    @property
    def path(self) -> Path:
        """Full path to the raw model file."""

        return self.source_dir / self.raw_name

    @property
    def translatable(self) -> bool:
        return self.model_format.translatable


def is_os_metadata(name: str) -> bool:
    """Return ``True`` for Finder/Explorer droppings and other dot-files."""

    return name in OS_METADATA_NAMES or name.startswith(".")


def iter_model_files(source_dir: Path) -> Iterator[tuple[Path, ModelFormat]]:
    """Yield ``(path, format)`` for supported model files beneath ``source_dir``."""

    def _walk(current: Path) -> Iterator[tuple[Path, ModelFormat]]:
        try:
            entries = sorted(current.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise InputDiscoveryError(f"Unable to list {current}: {exc}") from exc
        for entry in entries:
            if is_os_metadata(entry.name):
                continue
            if entry.is_dir():
                if entry.is_symlink():
                    continue
                yield from _walk(entry)
            elif entry.is_file():
                fmt = detect_model_format(entry.name)
                if fmt is not None:
                    yield entry, fmt

    yield from _walk(source_dir)


def scan(source_dir: Path) -> list[InputItem]:
    """Return the deduplicated draft models found under ``source_dir``.

    The earliest occurrence (in sorted depth-first order) of each canonical ID
    wins; later duplicates are dropped. An existing directory without any
    qualifying file yields an empty list.

    Raises:
        InputDiscoveryError: ``source_dir`` does not exist, is not a
            directory, or cannot be listed.
    """

    source_dir = Path(source_dir)
    if not source_dir.exists():
        raise InputDiscoveryError(f"Source directory does not exist: {source_dir}")
    if not source_dir.is_dir():
        raise InputDiscoveryError(f"Source path is not a directory: {source_dir}")

    items: list[InputItem] = []
    seen: dict[str, Path] = {}
    for path, fmt in iter_model_files(source_dir):
        canonical_id = derive_canonical_id(path.name)
        if canonical_id in seen:
            _LOGGER.debug(
                "dropping duplicate draft %s (canonical id %s already provided by %s)",
                path,
                canonical_id,
                seen[canonical_id],
            )
            continue
        seen[canonical_id] = path
        items.append(
            InputItem(
                raw_name=path.name,
                source_dir=path.parent,
                canonical_id=canonical_id,
                model_format=fmt,
            )
        )
    return items
