# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.core.__init__",
#   "purpose": "Core namespace aggregating the refinement orchestration building blocks.",
#   "sections": []
# }
# === /NAVMAP ===

"""Core namespace aggregating the refinement orchestration building blocks.

Downstream code can import from ``DraftsToRecon.Refinement.core`` to access:

- canonical ID derivation and input discovery (``derive_canonical_id``, ``scan``)
- completion tracking (``load_completed``, ``filter_pending``)
- the diagnostic value union and ``SummaryRegistry``
- checkpoint persistence (``CheckpointStore``)
- chunk sizing and the chunked scheduler (``chunk_size_for``, ``run_chunks``)
- per-field aggregation (``aggregate``, ``write_reports``)

Example:
    from pathlib import Path
    from DraftsToRecon.Refinement.core import scan, load_completed, filter_pending

    items = scan(Path("drafts"))
    pending = filter_pending(items, load_completed(Path("refinedReconstructions")))
"""

from __future__ import annotations

from .aggregate import (
    DEFAULT_ANOMALY_FIELDS,
    AggregatedReport,
    AnomalySet,
    FieldTable,
    aggregate,
    format_cell,
    write_reports,
)
from .batching import Batcher, chunk_size_for, plan_chunks
from .checkpoint import CheckpointStore
from .completion import REFINED_SUFFIX, filter_pending, load_completed
from .discovery import InputItem, scan
from .ids import ModelFormat, derive_canonical_id, detect_model_format
from .manifest import INFO_FILE_NAME, read_item_info, write_item_info
from .models import (
    DiagnosticRecord,
    DiagnosticValue,
    Scalar,
    Series,
    SummaryRegistry,
    coerce_record,
    coerce_value,
)
from .runner import ChunkPolicy, RunOutcome, SchedulerOptions, run_chunks
from .worker import ItemOutcome, ItemTask, RefineConfig, process_item

__all__ = [
    "AggregatedReport",
    "AnomalySet",
    "Batcher",
    "CheckpointStore",
    "ChunkPolicy",
    "DEFAULT_ANOMALY_FIELDS",
    "DiagnosticRecord",
    "DiagnosticValue",
    "FieldTable",
    "INFO_FILE_NAME",
    "InputItem",
    "ItemOutcome",
    "ItemTask",
    "ModelFormat",
    "REFINED_SUFFIX",
    "RefineConfig",
    "RunOutcome",
    "Scalar",
    "SchedulerOptions",
    "Series",
    "SummaryRegistry",
    "aggregate",
    "chunk_size_for",
    "coerce_record",
    "coerce_value",
    "derive_canonical_id",
    "detect_model_format",
    "filter_pending",
    "format_cell",
    "load_completed",
    "plan_chunks",
    "process_item",
    "read_item_info",
    "run_chunks",
    "scan",
    "write_item_info",
    "write_reports",
]
