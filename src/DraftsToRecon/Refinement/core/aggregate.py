# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.core.aggregate",
#   "purpose": "Consolidate per-item diagnostic records into per-field reports.",
#   "sections": [
#     {
#       "id": "fieldtable",
#       "name": "FieldTable",
#       "anchor": "class-fieldtable",
#       "kind": "class"
#     },
#     {
#       "id": "anomalyset",
#       "name": "AnomalySet",
#       "anchor": "class-anomalyset",
#       "kind": "class"
#     },
#     {
#       "id": "format-cell",
#       "name": "format_cell",
#       "anchor": "function-format-cell",
#       "kind": "function"
#     },
#     {
#       "id": "aggregate",
#       "name": "aggregate",
#       "anchor": "function-aggregate",
#       "kind": "function"
#     },
#     {
#       "id": "write-reports",
#       "name": "write_reports",
#       "anchor": "function-write-reports",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Consolidate per-item diagnostic records into per-field reports.

The field set is discovered from the registry at aggregation time. Each field
becomes a table with one row per item: the canonical ID followed by the
field's value(s), padded to the widest row. The anomaly fields (entity names
the translation step could not map) are handled differently: their values
from every item are pooled into one sorted, deduplicated list, which curators
use as a single correction worklist.

Every report lands in the summary folder as ``<field>.tsv``. Fields whose
sanitised names clash with each other or with the generated ``infoFile.tsv``
are given a distinct, stable filename instead of overwriting a sibling.
"""

from __future__ import annotations

import csv
import hashlib
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from DraftsToRecon.Refinement.io import atomic_write
from DraftsToRecon.Refinement.logging import get_logger, log_event

from .manifest import INFO_FILE_NAME
from .models import Atom, SummaryRegistry

__all__ = [
    "DEFAULT_ANOMALY_FIELDS",
    "REPORT_SUFFIX",
    "AggregatedReport",
    "AnomalySet",
    "FieldTable",
    "aggregate",
    "assign_report_filenames",
    "format_cell",
    "report_filename",
    "write_reports",
]

DEFAULT_ANOMALY_FIELDS: tuple[str, ...] = ("untranslatedMets", "untranslatedRxns")
REPORT_SUFFIX = ".tsv"


@dataclass(frozen=True, slots=True)
class FieldTable:
    """Per-item table for one diagnostic field; column 1 is the canonical ID."""

    field: str
    rows: tuple[tuple[str, ...], ...]

    @property
    def width(self) -> int:
        return max((len(row) for row in self.rows), default=1)

    @property
    def informative(self) -> bool:
        """``False`` when the table holds nothing beyond the ID column."""

        return self.width > 1


@dataclass(frozen=True, slots=True)
class AnomalySet:
    """Deduplicated values of an anomaly field pooled across all items."""

    field: str
    values: tuple[str, ...]

    @property
    def informative(self) -> bool:
        return bool(self.values)


AggregatedReport = Union[FieldTable, AnomalySet]


def format_cell(atom: Atom) -> str:
    """Render one diagnostic atom as a report cell."""

    if isinstance(atom, str):
        return atom
    if isinstance(atom, float):
        if math.isfinite(atom) and atom.is_integer():
            return str(int(atom))
        return format(atom, ".15g")
    return str(atom)


def aggregate(
    registry: SummaryRegistry,
    anomaly_fields: Iterable[str] = DEFAULT_ANOMALY_FIELDS,
) -> dict[str, AggregatedReport]:
    """Build one report per field found anywhere in ``registry``."""

    anomalies = frozenset(anomaly_fields)
    reports: dict[str, AggregatedReport] = {}
    for field_name in registry.field_names():
        if field_name in anomalies:
            pooled: set[str] = set()
            for record in registry.values():
                value = record.get(field_name)
                if value is None:
                    continue
                pooled.update(format_cell(atom) for atom in value.atoms if atom != "")
            reports[field_name] = AnomalySet(field=field_name, values=tuple(sorted(pooled)))
            continue

        rows: list[list[str]] = []
        for canonical_id, record in registry.items():
            row = [canonical_id]
            value = record.get(field_name)
            if value is not None:
                row.extend(format_cell(atom) for atom in value.atoms)
            rows.append(row)
        width = max(len(row) for row in rows)
        padded = tuple(tuple(row + [""] * (width - len(row))) for row in rows)
        reports[field_name] = FieldTable(field=field_name, rows=padded)
    return reports


def report_filename(field_name: str) -> str:
    """Return a filesystem-friendly report filename for ``field_name``."""

    safe = "".join(c if c.isalnum() or c in {"-", "_", "."} else "-" for c in field_name.strip())
    return f"{safe or 'field'}{REPORT_SUFFIX}"


def assign_report_filenames(
    field_names: Iterable[str], reserved: Iterable[str] = (INFO_FILE_NAME,)
) -> dict[str, str]:
    """Map each field to a distinct report filename.

    Fields are taken in sorted order and the first one to claim a sanitised
    name keeps it. Later fields that sanitise to a taken or reserved name
    (compared case-insensitively) get a suffix derived from the raw field
    name, so the assignment is stable across runs.
    """

    logger = get_logger(__name__, base_fields={"stage": "aggregate"})
    taken = {name.casefold() for name in reserved}
    assigned: dict[str, str] = {}
    for field_name in sorted(field_names):
        filename = report_filename(field_name)
        if filename.casefold() in taken:
            digest = hashlib.sha1(field_name.encode("utf-8")).hexdigest()[:8]
            stem = filename[: -len(REPORT_SUFFIX)]
            filename = f"{stem}-{digest}{REPORT_SUFFIX}"
            log_event(
                logger,
                "warning",
                "report filename collision",
                field=field_name,
                filename=filename,
            )
        taken.add(filename.casefold())
        assigned[field_name] = filename
    return assigned


def write_reports(reports: Mapping[str, AggregatedReport], summary_dir: Path) -> list[Path]:
    """Persist informative reports as headerless TSV files; return their paths."""

    summary_dir = Path(summary_dir)
    informative = {name: report for name, report in reports.items() if report.informative}
    filenames = assign_report_filenames(informative)
    written: list[Path] = []
    for field_name in sorted(informative):
        report = informative[field_name]
        path = summary_dir / filenames[field_name]
        with atomic_write(path) as handle:
            writer = csv.writer(handle, delimiter="\t", lineterminator="\n")
            if isinstance(report, AnomalySet):
                writer.writerows([value] for value in report.values)
            else:
                writer.writerows(report.rows)
        written.append(path)
    return written
