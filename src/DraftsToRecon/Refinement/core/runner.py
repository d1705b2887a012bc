# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.core.runner",
#   "purpose": "Chunked parallel scheduler with a checkpoint barrier after every chunk.",
#   "sections": [
#     {
#       "id": "chunkpolicy",
#       "name": "ChunkPolicy",
#       "anchor": "class-chunkpolicy",
#       "kind": "class"
#     },
#     {
#       "id": "scheduleroptions",
#       "name": "SchedulerOptions",
#       "anchor": "class-scheduleroptions",
#       "kind": "class"
#     },
#     {
#       "id": "runoutcome",
#       "name": "RunOutcome",
#       "anchor": "class-runoutcome",
#       "kind": "class"
#     },
#     {
#       "id": "run-chunk",
#       "name": "_run_chunk",
#       "anchor": "function-run-chunk",
#       "kind": "function"
#     },
#     {
#       "id": "run-chunks",
#       "name": "run_chunks",
#       "anchor": "function-run-chunks",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Chunked parallel scheduler with a checkpoint barrier after every chunk.

The work list is cut into chunks (:func:`plan_chunks`). Every task of a chunk
is submitted to one executor; the coordinator then blocks until each of them
has finished or been cancelled. Only after that barrier does it hand the
chunk's outcomes, in task order, to the ``commit`` callback, which writes
artifacts, merges diagnostics and saves the checkpoint. Workers never write
shared state, so no locking is needed between them.

Failure handling follows :class:`ChunkPolicy`. Under ``fail_fast`` the first
failed item cancels the chunk's not-yet-started tasks; finished successes are
still committed, then the run stops. Under ``continue`` failures are recorded
and the run proceeds.
"""

from __future__ import annotations

import concurrent.futures as cf
import time
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Optional, TypeVar

from DraftsToRecon.concurrency.executors import create_executor
from DraftsToRecon.Refinement.errors import ProcessingError
from DraftsToRecon.Refinement.logging import get_logger, log_event

from .batching import plan_chunks
from .worker import ItemOutcome

__all__ = [
    "ChunkPolicy",
    "CommitFn",
    "RunOutcome",
    "SchedulerOptions",
    "run_chunks",
]

T = TypeVar("T")


class ChunkPolicy(str, Enum):
    """What a failed item does to the rest of its chunk."""

    FAIL_FAST = "fail_fast"
    CONTINUE = "continue"


@dataclass(slots=True)
class SchedulerOptions:
    """Execution knobs for :func:`run_chunks`."""

    workers: int = 1
    policy: str = "io"
    chunk_policy: ChunkPolicy = ChunkPolicy.FAIL_FAST


@dataclass(slots=True)
class RunOutcome:
    """Summary returned by :func:`run_chunks`."""

    scheduled: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
    chunks: int = 0
    aborted: bool = False
    wall_ms: float = 0.0
    errors: list[ProcessingError] = field(default_factory=list)


@dataclass
class _ChunkEntry(Generic[T]):
    task: T
    outcome: ItemOutcome | None = None


CommitFn = Callable[[int, Sequence[tuple[T, ItemOutcome]]], Optional[Sequence[ProcessingError]]]


def _task_id(task: object) -> str:
    item = getattr(task, "item", None)
    return str(getattr(item, "canonical_id", None) or getattr(task, "canonical_id", "unknown"))


def _future_outcome(future: Future, task: object) -> ItemOutcome:
    try:
        outcome = future.result()
    except Exception as exc:
        canonical_id = _task_id(task)
        return ItemOutcome(
            canonical_id=canonical_id,
            status="failure",
            error=ProcessingError(canonical_id, f"worker crashed: {type(exc).__name__}: {exc}"),
        )
    if not isinstance(outcome, ItemOutcome):
        canonical_id = _task_id(task)
        return ItemOutcome(
            canonical_id=canonical_id,
            status="failure",
            error=ProcessingError(
                canonical_id, f"worker returned {type(outcome).__name__}, expected ItemOutcome"
            ),
        )
    return outcome


def _run_chunk(
    tasks: Sequence[T],
    process: Callable[[T], ItemOutcome],
    executor: cf.Executor | None,
    fail_fast: bool,
) -> list[_ChunkEntry[T]]:
    """Run one chunk to completion and return its entries in task order.

    Entries whose ``outcome`` is ``None`` were cancelled before starting.
    """

    entries = [_ChunkEntry(task=task) for task in tasks]

    if executor is None:
        for entry in entries:
            try:
                entry.outcome = process(entry.task)
            except Exception as exc:
                canonical_id = _task_id(entry.task)
                entry.outcome = ItemOutcome(
                    canonical_id=canonical_id,
                    status="failure",
                    error=ProcessingError(canonical_id, f"{type(exc).__name__}: {exc}"),
                )
            if fail_fast and not entry.outcome.ok:
                break
        return entries

    pending: dict[Future, _ChunkEntry[T]] = {
        executor.submit(process, entry.task): entry for entry in entries
    }
    try:
        while pending:
            done, _ = wait(tuple(pending), return_when=FIRST_COMPLETED)
            for future in done:
                entry = pending.pop(future)
                if future.cancelled():
                    continue
                entry.outcome = _future_outcome(future, entry.task)
                if fail_fast and not entry.outcome.ok:
                    for other in list(pending):
                        if other.cancel():
                            pending.pop(other)
    except KeyboardInterrupt:
        for future in pending:
            future.cancel()
        raise
    return entries


def run_chunks(
    tasks: Sequence[T],
    process: Callable[[T], ItemOutcome],
    commit: CommitFn,
    options: SchedulerOptions | None = None,
) -> RunOutcome:
    """Drive ``process`` over ``tasks`` chunk by chunk.

    ``commit(chunk_index, results)`` is invoked exactly once per executed
    chunk, after every task of that chunk has finished, and before the next
    chunk is submitted. ``results`` holds ``(task, outcome)`` pairs in task
    order for every task that ran (cancelled tasks are omitted). It may return
    errors for items it could not persist; those move from the succeeded to
    the failed count and fall under the chunk policy like any item failure.
    """

    options = options or SchedulerOptions()
    chunk_policy = ChunkPolicy(options.chunk_policy)
    fail_fast = chunk_policy is ChunkPolicy.FAIL_FAST
    logger = get_logger(__name__, base_fields={"stage": "refine"})

    chunks = plan_chunks(list(tasks))
    outcome = RunOutcome(scheduled=len(tasks))
    wall_start = time.perf_counter()

    if not chunks:
        log_event(logger, "info", "nothing to refine", scheduled=0)
        return outcome

    log_event(
        logger,
        "info",
        "refinement run starting",
        scheduled=len(tasks),
        chunks=len(chunks),
        chunk_size=len(chunks[0]),
        workers=options.workers,
        policy=options.policy,
        chunk_policy=chunk_policy.value,
    )

    executor, needs_shutdown = create_executor(
        options.policy, int(options.workers), widest_chunk=len(chunks[0])
    )
    try:
        for index, chunk in enumerate(chunks):
            chunk_start = time.perf_counter()
            entries = _run_chunk(chunk, process, executor, fail_fast)

            results: list[tuple[T, ItemOutcome]] = []
            chunk_failed = 0
            for entry in entries:
                if entry.outcome is None:
                    outcome.cancelled += 1
                    continue
                results.append((entry.task, entry.outcome))
                if entry.outcome.ok:
                    outcome.succeeded += 1
                else:
                    chunk_failed += 1
                    if entry.outcome.error is not None:
                        outcome.errors.append(entry.outcome.error)
                    log_event(
                        logger,
                        "error",
                        "item refinement failed",
                        item_id=entry.outcome.canonical_id,
                        error=str(entry.outcome.error),
                        error_code="PROCESSING",
                        chunk=index,
                    )
            outcome.failed += chunk_failed

            commit_errors = list(commit(index, results) or ())
            outcome.chunks += 1
            if commit_errors:
                chunk_failed += len(commit_errors)
                outcome.failed += len(commit_errors)
                outcome.succeeded -= len(commit_errors)
                outcome.errors.extend(commit_errors)

            log_event(
                logger,
                "info",
                "chunk committed",
                chunk=index,
                items=len(chunk),
                succeeded=len(results) - chunk_failed,
                failed=chunk_failed,
                completed=outcome.succeeded + outcome.failed,
                total=len(tasks),
                chunk_ms=round((time.perf_counter() - chunk_start) * 1000.0, 1),
            )

            if fail_fast and chunk_failed:
                outcome.aborted = True
                remaining = sum(len(later) for later in chunks[index + 1 :])
                outcome.cancelled += remaining
                log_event(
                    logger,
                    "warning",
                    "aborting run after failed chunk",
                    item_id="__run__",
                    chunk=index,
                    remaining=remaining,
                    error_code="PROCESSING",
                )
                break
    finally:
        if executor is not None and needs_shutdown:
            executor.shutdown(wait=True, cancel_futures=True)
        outcome.wall_ms = (time.perf_counter() - wall_start) * 1000.0

    return outcome
