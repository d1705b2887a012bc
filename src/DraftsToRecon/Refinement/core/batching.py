# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.core.batching",
#   "purpose": "Chunk sizing policy and fixed-size batching for refinement runs.",
#   "sections": [
#     {
#       "id": "chunk-size-for",
#       "name": "chunk_size_for",
#       "anchor": "function-chunk-size-for",
#       "kind": "function"
#     },
#     {
#       "id": "batcher",
#       "name": "Batcher",
#       "anchor": "class-batcher",
#       "kind": "class"
#     },
#     {
#       "id": "plan-chunks",
#       "name": "plan_chunks",
#       "anchor": "function-plan-chunks",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Chunk sizing policy and fixed-size batching for refinement runs.

A chunk is the unit between two checkpoint barriers. Large work lists use big
chunks to amortise the cost of rewriting the checkpoint; small ones keep
chunks short so an interruption loses little work.
"""

from __future__ import annotations

from itertools import islice
from typing import Iterable, Iterator, List, Sequence, TypeVar

T = TypeVar("T")

__all__ = [
    "LARGE_CHUNK_SIZE",
    "LARGE_RUN_THRESHOLD",
    "SMALL_CHUNK_SIZE",
    "Batcher",
    "chunk_size_for",
    "plan_chunks",
]

LARGE_RUN_THRESHOLD = 200
LARGE_CHUNK_SIZE = 100
SMALL_CHUNK_SIZE = 25


def chunk_size_for(total: int) -> int:
    """Return the chunk size used for a work list of ``total`` items."""

    return LARGE_CHUNK_SIZE if total > LARGE_RUN_THRESHOLD else SMALL_CHUNK_SIZE


class Batcher(Iterable[List[T]]):
    """Yield fixed-size batches from an iterable.

    The iterable is consumed lazily; only one batch is materialised at a time.
    The final batch may be shorter than ``batch_size``.
    """

    def __init__(self, iterable: Iterable[T], batch_size: int) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._batch_size = batch_size
        self._iterable = iterable

    def __iter__(self) -> Iterator[List[T]]:
        iterator = iter(self._iterable)
        while True:
            batch = list(islice(iterator, self._batch_size))
            if not batch:
                break
            yield batch


def plan_chunks(items: Sequence[T]) -> list[list[T]]:
    """Partition ``items`` into consecutive chunks sized by :func:`chunk_size_for`."""

    return list(Batcher(items, chunk_size_for(len(items))))
