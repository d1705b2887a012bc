# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.core.worker",
#   "purpose": "Per-item refinement task executed inside scheduler workers.",
#   "sections": [
#     {
#       "id": "refineconfig",
#       "name": "RefineConfig",
#       "anchor": "class-refineconfig",
#       "kind": "class"
#     },
#     {
#       "id": "itemtask",
#       "name": "ItemTask",
#       "anchor": "class-itemtask",
#       "kind": "class"
#     },
#     {
#       "id": "itemoutcome",
#       "name": "ItemOutcome",
#       "anchor": "class-itemoutcome",
#       "kind": "class"
#     },
#     {
#       "id": "ensure-worker-context",
#       "name": "_ensure_worker_context",
#       "anchor": "function-ensure-worker-context",
#       "kind": "function"
#     },
#     {
#       "id": "process-item",
#       "name": "process_item",
#       "anchor": "function-process-item",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Per-item refinement task executed inside scheduler workers.

Workers receive an immutable :class:`ItemTask` and return an
:class:`ItemOutcome`; they never touch the output folders or the registry.
Each worker builds its execution context once through
``toolkit.prepare_worker`` and reuses it for every later task carrying the
same :class:`RefineConfig`. The cache lives in a ``threading.local`` so
thread-pool workers stay isolated from each other and each spawned process
starts with an empty cache.
"""

from __future__ import annotations

import copy
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from DraftsToRecon.Refinement.errors import AggregationError, LoadError, ProcessingError
from DraftsToRecon.Refinement.toolkit import RefinementToolkit, load_model

from .discovery import InputItem
from .models import DiagnosticRecord, coerce_record

__all__ = [
    "ItemOutcome",
    "ItemTask",
    "RefineConfig",
    "process_item",
    "reset_worker_context",
]


@dataclass(frozen=True, slots=True)
class RefineConfig:
    """Read-only configuration shared by every task of a run."""

    info_file: Optional[Path]
    reference_dir: Optional[Path]
    translate: bool = True
    solver: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ItemTask:
    """Unit of work shipped to a worker."""

    item: InputItem
    config: RefineConfig
    toolkit: RefinementToolkit


@dataclass(slots=True)
class ItemOutcome:
    """Explicit success/failure result for one item."""

    canonical_id: str
    status: str
    duration_s: float = 0.0
    refined_model: Any = None
    diagnostics: DiagnosticRecord = field(default_factory=dict)
    translated_model: Any = None
    error: Optional[ProcessingError] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


_WORKER_STATE = threading.local()


def reset_worker_context() -> None:
    """Forget the cached context of the calling worker."""

    _WORKER_STATE.__dict__.clear()


def _ensure_worker_context(toolkit: RefinementToolkit, config: RefineConfig) -> Any:
    """Return the worker context for ``config``, building it on first use."""

    # Process pools unpickle a fresh toolkit per task, so key on its type.
    key = (config, type(toolkit).__module__, type(toolkit).__qualname__)
    if getattr(_WORKER_STATE, "key", None) == key:
        return _WORKER_STATE.context
    context = toolkit.prepare_worker(config)
    _WORKER_STATE.key = key
    _WORKER_STATE.context = context
    return context


def process_item(task: ItemTask) -> ItemOutcome:
    """Load, refine, and optionally translate one draft model.

    Never raises for item-level problems: loader, refiner, and diagnostic
    shape failures are reported as a ``"failure"`` outcome so the coordinator
    can apply its chunk policy.
    """

    item = task.item
    config = task.config
    toolkit = task.toolkit
    started = time.perf_counter()
    try:
        context = _ensure_worker_context(toolkit, config)
        raw_model = load_model(item.path, toolkit)
        # Refiners may edit the model in place; translate the draft as loaded.
        draft = None
        if config.translate and item.translatable:
            draft = copy.deepcopy(raw_model)
        refined, diagnostics = toolkit.refine(
            raw_model,
            item.canonical_id,
            info_file=config.info_file,
            reference_dir=config.reference_dir,
            translate=config.translate,
            context=context,
        )
        record = coerce_record(diagnostics)
        translated = toolkit.translate(draft) if draft is not None else None
    except LoadError as exc:
        return _failure(item, started, f"load failed: {exc}")
    except AggregationError as exc:
        return _failure(item, started, f"unsupported diagnostics: {exc}")
    except Exception as exc:
        return _failure(item, started, f"{type(exc).__name__}: {exc}")

    return ItemOutcome(
        canonical_id=item.canonical_id,
        status="success",
        duration_s=time.perf_counter() - started,
        refined_model=refined,
        diagnostics=record,
        translated_model=translated,
    )


def _failure(item: InputItem, started: float, message: str) -> ItemOutcome:
    return ItemOutcome(
        canonical_id=item.canonical_id,
        status="failure",
        duration_s=time.perf_counter() - started,
        error=ProcessingError(item.canonical_id, message),
    )
