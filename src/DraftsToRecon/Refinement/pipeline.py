# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.pipeline",
#   "purpose": "End-to-end refinement run: discover, resume, refine in chunks, aggregate.",
#   "sections": [
#     {
#       "id": "runplan",
#       "name": "RunPlan",
#       "anchor": "class-runplan",
#       "kind": "class"
#     },
#     {
#       "id": "pipelineresult",
#       "name": "PipelineResult",
#       "anchor": "class-pipelineresult",
#       "kind": "class"
#     },
#     {
#       "id": "plan-run",
#       "name": "plan_run",
#       "anchor": "function-plan-run",
#       "kind": "function"
#     },
#     {
#       "id": "chunkcommitter",
#       "name": "ChunkCommitter",
#       "anchor": "class-chunkcommitter",
#       "kind": "class"
#     },
#     {
#       "id": "run-pipeline",
#       "name": "run_pipeline",
#       "anchor": "function-run-pipeline",
#       "kind": "function"
#     },
#     {
#       "id": "rebuild-reports",
#       "name": "rebuild_reports",
#       "anchor": "function-rebuild-reports",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""End-to-end refinement run: discover, resume, refine in chunks, aggregate.

:func:`run_pipeline` wires the core components together. Everything that
touches shared state (output folders, the run manifest, the checkpoint)
happens in :class:`ChunkCommitter`, which the scheduler calls on the
coordinator after each chunk barrier.

A commit runs in three steps. Artifacts are first written into a
``.partial`` staging folder; an item whose write fails is reported back to
the scheduler as a failure and never reaches the registry. The diagnostics of
the staged items are then merged and the checkpoint is saved. Finally the
staged files are moved into place. An artifact in the refined folder is what
marks an item complete for the next run, so its diagnostics must already be
durable when it appears; the reverse crash window only causes the item to be
refined again, which overwrites its registry entry with the same key.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from DraftsToRecon.Refinement.core.aggregate import aggregate, write_reports
from DraftsToRecon.Refinement.core.batching import chunk_size_for, plan_chunks
from DraftsToRecon.Refinement.core.checkpoint import CheckpointStore
from DraftsToRecon.Refinement.core.completion import REFINED_SUFFIX, filter_pending, load_completed
from DraftsToRecon.Refinement.core.discovery import InputItem, scan
from DraftsToRecon.Refinement.core.manifest import INFO_FILE_NAME, write_item_info
from DraftsToRecon.Refinement.core.models import SummaryRegistry
from DraftsToRecon.Refinement.core.runner import RunOutcome, run_chunks
from DraftsToRecon.Refinement.core.worker import ItemOutcome, ItemTask, process_item
from DraftsToRecon.Refinement.errors import ProcessingError
from DraftsToRecon.Refinement.io import manifest_append, resolve_manifest_path
from DraftsToRecon.Refinement.logging import get_logger, log_event
from DraftsToRecon.Refinement.settings import RefinementSettings
from DraftsToRecon.Refinement.toolkit import RefinementToolkit

__all__ = [
    "ChunkCommitter",
    "PipelineResult",
    "RunPlan",
    "plan_run",
    "rebuild_reports",
    "run_pipeline",
]

_PARTIAL_DIR = ".partial"


@dataclass(slots=True)
class RunPlan:
    """Work list derived from the source folder and the refined folder."""

    items: list[InputItem]
    completed: frozenset[str]
    pending: list[InputItem]

    @property
    def chunk_size(self) -> int:
        return chunk_size_for(len(self.pending))

    @property
    def chunk_sizes(self) -> list[int]:
        return [len(chunk) for chunk in plan_chunks(self.pending)]


@dataclass(slots=True)
class PipelineResult:
    """Locations and counters of a finished run."""

    version: str
    refined_dir: Path
    translated_dir: Path
    summary_dir: Path
    export_dir: Optional[Path]
    outcome: RunOutcome
    reports: list[Path] = field(default_factory=list)
    registry_size: int = 0


def plan_run(source_dir: Path, settings: RefinementSettings) -> RunPlan:
    """Scan ``source_dir`` and subtract the items already refined."""

    items = scan(Path(source_dir))
    completed = load_completed(settings.refined_dir, REFINED_SUFFIX)
    return RunPlan(items=items, completed=completed, pending=filter_pending(items, completed))


def _stage_artifact(toolkit: RefinementToolkit, model: Any, target: Path) -> Path:
    """Write ``model`` via the toolkit into the staging folder next to ``target``."""

    staging = target.parent / _PARTIAL_DIR / target.name
    staging.parent.mkdir(parents=True, exist_ok=True)
    try:
        toolkit.write_model(model, staging)
    except BaseException:
        staging.unlink(missing_ok=True)
        raise
    return staging


def _discard(staged: Sequence[tuple[Path, Path]]) -> None:
    for staging, _ in staged:
        staging.unlink(missing_ok=True)


class ChunkCommitter:
    """Coordinator-side commit step invoked after every chunk barrier.

    Returns the items whose artifacts could not be written; the scheduler
    counts them as failures and applies its chunk policy to them.
    """

    def __init__(
        self,
        *,
        toolkit: RefinementToolkit,
        registry: SummaryRegistry,
        store: CheckpointStore,
        refined_dir: Path,
        translated_dir: Path,
        manifest_path: Path,
        config_hash: str = "",
    ) -> None:
        self.toolkit = toolkit
        self.registry = registry
        self.store = store
        self.refined_dir = refined_dir
        self.translated_dir = translated_dir
        self.manifest_path = manifest_path
        self.config_hash = config_hash
        self.saves = 0
        self._logger = get_logger(__name__, base_fields={"stage": "commit"})

    def _stage(self, task: ItemTask, outcome: ItemOutcome) -> list[tuple[Path, Path]]:
        canonical_id = task.item.canonical_id
        targets: list[tuple[Any, Path]] = []
        if outcome.translated_model is not None:
            targets.append(
                (outcome.translated_model, self.translated_dir / f"{canonical_id}{REFINED_SUFFIX}")
            )
        # The refined artifact goes last: its presence marks the item complete.
        targets.append((outcome.refined_model, self.refined_dir / f"{canonical_id}{REFINED_SUFFIX}"))

        staged: list[tuple[Path, Path]] = []
        try:
            for model, target in targets:
                staged.append((_stage_artifact(self.toolkit, model, target), target))
        except BaseException:
            _discard(staged)
            raise
        return staged

    def _write_failed(
        self, chunk_index: int, task: ItemTask, outcome: ItemOutcome, exc: BaseException
    ) -> ProcessingError:
        canonical_id = task.item.canonical_id
        error = ProcessingError(canonical_id, f"write failed: {type(exc).__name__}: {exc}")
        error.__cause__ = exc
        log_event(
            self._logger,
            "error",
            "artifact write failed",
            item_id=canonical_id,
            error=str(exc),
            error_code=error.error_code,
            chunk=chunk_index,
        )
        self._record_failure(chunk_index, task, outcome.duration_s, error)
        return error

    def _record_failure(
        self, chunk_index: int, task: ItemTask, duration_s: float, error: Optional[ProcessingError]
    ) -> None:
        manifest_append(
            self.manifest_path,
            task.item.canonical_id,
            "failure",
            duration_s=duration_s,
            error=str(error) if error is not None else "unknown failure",
            chunk=chunk_index,
            source=str(task.item.path),
            cfg_hash=self.config_hash,
        )

    def __call__(
        self, chunk_index: int, results: Sequence[tuple[ItemTask, ItemOutcome]]
    ) -> list[ProcessingError]:
        write_errors: list[ProcessingError] = []
        staged: list[tuple[ItemTask, ItemOutcome, list[tuple[Path, Path]]]] = []
        for task, outcome in results:
            if not outcome.ok:
                self._record_failure(chunk_index, task, outcome.duration_s, outcome.error)
                continue
            try:
                staged.append((task, outcome, self._stage(task, outcome)))
            except Exception as exc:
                write_errors.append(self._write_failed(chunk_index, task, outcome, exc))

        for task, outcome, _ in staged:
            self.registry.merge(task.item.canonical_id, outcome.diagnostics)
        try:
            self.store.save(self.registry)
        except BaseException:
            for _, _, artifacts in staged:
                _discard(artifacts)
            raise
        self.saves += 1

        written = 0
        unplaced: list[str] = []
        for task, outcome, artifacts in staged:
            try:
                for staging, target in artifacts:
                    os.replace(staging, target)
            except OSError as exc:
                _discard(artifacts)
                write_errors.append(self._write_failed(chunk_index, task, outcome, exc))
                unplaced.append(task.item.canonical_id)
                continue
            written += 1
            manifest_append(
                self.manifest_path,
                task.item.canonical_id,
                "success",
                duration_s=outcome.duration_s,
                chunk=chunk_index,
                source=str(task.item.path),
                output=str(artifacts[-1][1]),
                translated=outcome.translated_model is not None,
                cfg_hash=self.config_hash,
            )

        if unplaced:
            for canonical_id in unplaced:
                self.registry.discard(canonical_id)
            self.store.save(self.registry)
            self.saves += 1

        log_event(
            self._logger,
            "debug",
            "chunk artifacts written",
            chunk=chunk_index,
            written=written,
            write_failures=len(write_errors),
            registry_items=len(self.registry),
        )
        return write_errors


def run_pipeline(
    source_dir: Path,
    settings: RefinementSettings,
    toolkit: RefinementToolkit,
) -> PipelineResult:
    """Refine every not-yet-refined draft under ``source_dir`` and rebuild reports.

    Raises:
        InputDiscoveryError: ``source_dir`` cannot be scanned.
        CheckpointIOError: the existing checkpoint is corrupt or cannot be
            written.
        ProcessingError: an item failed under the ``fail_fast`` chunk policy.
            Everything committed before the failure remains on disk.
    """

    logger = get_logger(__name__, base_fields={"stage": "pipeline"})
    version = settings.resource_version

    settings.refined_dir.mkdir(parents=True, exist_ok=True)
    if settings.translate_models:
        settings.translated_dir.mkdir(parents=True, exist_ok=True)
    settings.summary_dir.mkdir(parents=True, exist_ok=True)

    run_plan = plan_run(source_dir, settings)

    info_file = settings.item_info_file
    if info_file is None:
        info_file = write_item_info(run_plan.items, settings.summary_dir / INFO_FILE_NAME)

    store = CheckpointStore(settings.summary_dir, version)
    registry = store.load()

    log_event(
        logger,
        "info",
        "refinement plan ready",
        version=version,
        discovered=len(run_plan.items),
        completed=len(run_plan.completed),
        pending=len(run_plan.pending),
        registry_items=len(registry),
    )

    config = settings.to_refine_config(info_file)
    tasks = [ItemTask(item=item, config=config, toolkit=toolkit) for item in run_plan.pending]
    committer = ChunkCommitter(
        toolkit=toolkit,
        registry=registry,
        store=store,
        refined_dir=settings.refined_dir,
        translated_dir=settings.translated_dir,
        manifest_path=resolve_manifest_path(settings.summary_dir, version),
        config_hash=settings.config_hash(),
    )
    outcome = run_chunks(tasks, process_item, committer, settings.to_scheduler_options())

    if outcome.aborted:
        first = outcome.errors[0] if outcome.errors else None
        canonical_id = first.canonical_id if first is not None else "unknown"
        detail = first.message if first is not None else "item failure"
        raise ProcessingError(
            canonical_id,
            f"run aborted after {outcome.chunks} chunk(s) "
            f"({outcome.succeeded} refined, {outcome.failed} failed, "
            f"{outcome.cancelled} not started): {detail}",
        ) from first

    reports = aggregate(registry, settings.anomaly_fields)
    written = write_reports(reports, settings.summary_dir)

    export_dir: Optional[Path] = None
    if settings.export_secondary:
        export_dir = Path(toolkit.export_secondary(settings.refined_dir, settings.export_dir))

    log_event(
        logger,
        "info",
        "refinement run finished",
        version=version,
        refined=outcome.succeeded,
        failed=outcome.failed,
        reports=len(written),
        registry_items=len(registry),
        wall_ms=round(outcome.wall_ms, 1),
    )

    return PipelineResult(
        version=version,
        refined_dir=settings.refined_dir,
        translated_dir=settings.translated_dir,
        summary_dir=settings.summary_dir,
        export_dir=export_dir,
        outcome=outcome,
        reports=written,
        registry_size=len(registry),
    )


def rebuild_reports(
    summary_dir: Path, version: str, anomaly_fields: Sequence[str]
) -> list[Path]:
    """Recompute every field report from the checkpoint alone."""

    registry = CheckpointStore(summary_dir, version).load()
    return write_reports(aggregate(registry, anomaly_fields), summary_dir)
