# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.core.models",
#   "purpose": "Diagnostic value union and the accumulated summary registry.",
#   "sections": [
#     {
#       "id": "scalar",
#       "name": "Scalar",
#       "anchor": "class-scalar",
#       "kind": "class"
#     },
#     {
#       "id": "series",
#       "name": "Series",
#       "anchor": "class-series",
#       "kind": "class"
#     },
#     {
#       "id": "coerce-value",
#       "name": "coerce_value",
#       "anchor": "function-coerce-value",
#       "kind": "function"
#     },
#     {
#       "id": "coerce-record",
#       "name": "coerce_record",
#       "anchor": "function-coerce-record",
#       "kind": "function"
#     },
#     {
#       "id": "summaryregistry",
#       "name": "SummaryRegistry",
#       "anchor": "class-summaryregistry",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Diagnostic value union and the accumulated summary registry.

Refiners report free-form diagnostics: each field is either a single number
or string, or an ordered list of them, and the set of fields differs from one
model to the next. The engine normalises that output into the
``Scalar | Series`` union below as soon as it arrives, so the aggregator and
the checkpoint serializer never have to inspect raw Python or numpy types.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Union

import numpy as np

from DraftsToRecon.Refinement.errors import AggregationError

__all__ = [
    "Atom",
    "DiagnosticRecord",
    "DiagnosticValue",
    "Scalar",
    "Series",
    "SummaryRegistry",
    "coerce_record",
    "coerce_value",
]

Atom = Union[int, float, str]


@dataclass(frozen=True, slots=True)
class Scalar:
    """Single number or string."""

    value: Atom

    @property
    def atoms(self) -> tuple[Atom, ...]:
        if isinstance(self.value, str) and not self.value:
            return ()
        return (self.value,)

    def to_json(self) -> Atom:
        return self.value


@dataclass(frozen=True, slots=True)
class Series:
    """Ordered sequence of numbers and/or strings."""

    values: tuple[Atom, ...]

    @property
    def atoms(self) -> tuple[Atom, ...]:
        return self.values

    def to_json(self) -> list[Atom]:
        return list(self.values)


DiagnosticValue = Union[Scalar, Series]
DiagnosticRecord = dict[str, DiagnosticValue]


def _coerce_atom(raw: Any, field: str) -> Atom:
    if isinstance(raw, np.generic):
        raw = raw.item()
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float, str)):
        return raw
    raise AggregationError(
        f"Diagnostic field '{field}' contains unsupported element {raw!r} ({type(raw).__name__})"
    )


def coerce_value(raw: Any, field: str = "<unnamed>") -> DiagnosticValue:
    """Normalise a raw refiner value into :data:`DiagnosticValue`.

    ``None`` becomes an empty series. Numpy scalars and one-dimensional arrays
    are unwrapped; anything with more structure raises
    :class:`AggregationError`.
    """

    if isinstance(raw, (Scalar, Series)):
        return raw
    if raw is None:
        return Series(())
    if isinstance(raw, np.ndarray):
        if raw.ndim == 0:
            return Scalar(_coerce_atom(raw.item(), field))
        if raw.ndim != 1 and not (raw.ndim == 2 and 1 in raw.shape):
            raise AggregationError(
                f"Diagnostic field '{field}' has unsupported array shape {raw.shape}"
            )
        raw = raw.ravel().tolist()
    if isinstance(raw, (list, tuple)):
        return Series(tuple(_coerce_atom(item, field) for item in raw))
    if isinstance(raw, (bool, int, float, str, np.generic)):
        return Scalar(_coerce_atom(raw, field))
    raise AggregationError(
        f"Diagnostic field '{field}' has unsupported type {type(raw).__name__}"
    )


def coerce_record(raw: Mapping[str, Any] | None) -> DiagnosticRecord:
    """Normalise every field of a refiner diagnostic mapping."""

    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise AggregationError(
            f"Diagnostic record must be a mapping, got {type(raw).__name__}"
        )
    return {str(field): coerce_value(value, str(field)) for field, value in raw.items()}


class SummaryRegistry(Mapping[str, DiagnosticRecord]):
    """Canonical ID → diagnostic record, accumulated across runs.

    Merges overwrite by canonical ID, so replaying a chunk is harmless.
    Iteration follows first-insertion order, which is the order items were
    committed across all runs.
    """

    def __init__(self, records: Mapping[str, DiagnosticRecord] | None = None) -> None:
        self._records: dict[str, DiagnosticRecord] = {}
        for canonical_id, record in (records or {}).items():
            self.merge(canonical_id, record)

    def __getitem__(self, canonical_id: str) -> DiagnosticRecord:
        return self._records[canonical_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"SummaryRegistry({len(self._records)} items)"

    def merge(self, canonical_id: str, record: Mapping[str, Any]) -> None:
        """Insert or replace the record for ``canonical_id``."""

        self._records[canonical_id] = coerce_record(record)

    def discard(self, canonical_id: str) -> None:
        self._records.pop(canonical_id, None)

    def field_names(self) -> list[str]:
        """Sorted union of field names across all records."""

        names: set[str] = set()
        for record in self._records.values():
            names.update(record)
        return sorted(names)

    def to_payload(self) -> dict[str, dict[str, Any]]:
        """Plain-JSON representation used by the checkpoint store."""

        return {
            canonical_id: {field: value.to_json() for field, value in record.items()}
            for canonical_id, record in self._records.items()
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SummaryRegistry":
        """Rebuild a registry from :meth:`to_payload` output.

        Raises:
            AggregationError: a record is not a mapping or holds a value of
                unsupported shape.
        """

        registry = cls()
        for canonical_id, record in payload.items():
            registry.merge(str(canonical_id), record)
        return registry
