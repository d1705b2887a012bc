# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.concurrency.executors",
#   "purpose": "Worker pools sized for the refinement chunk scheduler.",
#   "sections": [
#     {
#       "id": "poolhandle",
#       "name": "PoolHandle",
#       "anchor": "class-poolhandle",
#       "kind": "class"
#     },
#     {
#       "id": "pool-width",
#       "name": "pool_width",
#       "anchor": "function-pool-width",
#       "kind": "function"
#     },
#     {
#       "id": "create-executor",
#       "name": "create_executor",
#       "anchor": "function-create-executor",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Worker pools sized for the refinement chunk scheduler.

One pool serves every chunk of a run. A chunk never holds more tasks than
the first one, so the pool is never wider than that: extra workers would sit
idle behind the barrier, and for spawned processes each one pays a full
interpreter and toolkit import on start-up.
"""

from __future__ import annotations

from concurrent import futures
from multiprocessing import get_context
from typing import NamedTuple, Optional

__all__ = ["POLICIES", "PoolHandle", "THREAD_NAME_PREFIX", "create_executor", "pool_width"]

THREAD_NAME_PREFIX = "recon-refine"
POLICIES = ("io", "cpu")


class PoolHandle(NamedTuple):
    """Executor for a run, or ``None`` when items are refined inline."""

    executor: Optional[futures.Executor]
    needs_shutdown: bool


def pool_width(workers: int, widest_chunk: Optional[int] = None) -> int:
    """Number of workers actually worth starting."""

    width = max(int(workers), 0)
    if widest_chunk is not None:
        width = min(width, max(int(widest_chunk), 0))
    return width


def create_executor(
    policy: str,
    workers: int,
    *,
    widest_chunk: Optional[int] = None,
    name: str = THREAD_NAME_PREFIX,
) -> PoolHandle:
    """
    Build the pool that runs the items of each chunk.

    Args:
        policy: ``"cpu"`` for refiners that hold the GIL (a spawned process
            pool, so every worker starts with a clean solver state); ``"io"``
            for toolkits that release it (a thread pool).
        workers: Requested pool size.
        widest_chunk: Size of the largest chunk; caps the pool width.
        name: Thread name prefix, visible in thread dumps and log records.

    Returns:
        A :class:`PoolHandle`. Its executor is ``None`` when the effective
        width is ``0`` or ``1``, meaning "refine inline on the coordinator".

    Raises:
        ValueError: ``policy`` is not one of :data:`POLICIES`.
    """
    normalised = (policy or "io").lower()
    if normalised not in POLICIES:
        raise ValueError(f"unknown executor policy {policy!r}; expected one of {POLICIES}")

    width = pool_width(workers, widest_chunk)
    if width <= 1:
        return PoolHandle(None, False)
    if normalised == "cpu":
        pool = futures.ProcessPoolExecutor(max_workers=width, mp_context=get_context("spawn"))
    else:
        pool = futures.ThreadPoolExecutor(max_workers=width, thread_name_prefix=name)
    return PoolHandle(pool, True)
