# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.core.ids",
#   "purpose": "Canonical identifier derivation for draft reconstruction files.",
#   "sections": [
#     {
#       "id": "modelformat",
#       "name": "ModelFormat",
#       "anchor": "class-modelformat",
#       "kind": "class"
#     },
#     {
#       "id": "detect-model-format",
#       "name": "detect_model_format",
#       "anchor": "function-detect-model-format",
#       "kind": "function"
#     },
#     {
#       "id": "derive-canonical-id",
#       "name": "derive_canonical_id",
#       "anchor": "function-derive-canonical-id",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Canonical identifier derivation for draft reconstruction files.

The canonical ID is the key for deduplication, completion tracking, the
summary registry, and every output artifact name. It must therefore be a pure
function of the raw file name: the same name yields the same ID on every run
and every machine, otherwise resume would reprocess (or skip) the wrong
models.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import PurePath
from typing import Optional

__all__ = [
    "MODEL_SUFFIXES",
    "ModelFormat",
    "derive_canonical_id",
    "detect_model_format",
]

MODEL_SUFFIXES: tuple[str, ...] = (".xml", ".sbml", ".mat")

_INVALID_RUN = re.compile(r"[^A-Za-z0-9_]+")


class ModelFormat(str, Enum):
    """Serialized draft model formats accepted by the enumerator."""

    SBML = "sbml"
    MAT = "mat"

    @property
    def translatable(self) -> bool:
        """SBML drafts use the upstream namespace and can be translated."""

        return self is ModelFormat.SBML


def detect_model_format(raw_name: str) -> Optional[ModelFormat]:
    """Return the :class:`ModelFormat` indicated by ``raw_name`` or ``None``."""

    lowered = PurePath(raw_name).name.lower()
    if lowered.endswith(".mat"):
        return ModelFormat.MAT
    if lowered.endswith(".xml") or ".sbml" in lowered:
        return ModelFormat.SBML
    return None


def derive_canonical_id(raw_name: str) -> str:
    """Map a raw draft file name onto its canonical identifier.

    >>> derive_canonical_id("Bacteroides-fragilis 638R.sbml.xml")
    'Bacteroides_fragilis_638R'
    >>> derive_canonical_id("1234.5.mat")
    'm_1234_5'
    """

    stem = PurePath(raw_name).name
    stripped = True
    while stripped:
        stripped = False
        lowered = stem.lower()
        for suffix in MODEL_SUFFIXES:
            if lowered.endswith(suffix) and len(stem) > len(suffix):
                stem = stem[: -len(suffix)]
                stripped = True
                break
    cleaned = _INVALID_RUN.sub("_", stem).strip("_")
    if not cleaned or cleaned[0].isdigit():
        cleaned = f"m_{cleaned}"
    return cleaned
