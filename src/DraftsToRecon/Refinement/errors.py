# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.errors",
#   "purpose": "Exception taxonomy raised by the refinement orchestration engine.",
#   "sections": [
#     {
#       "id": "refinementerror",
#       "name": "RefinementError",
#       "anchor": "class-refinementerror",
#       "kind": "class"
#     },
#     {
#       "id": "inputdiscoveryerror",
#       "name": "InputDiscoveryError",
#       "anchor": "class-inputdiscoveryerror",
#       "kind": "class"
#     },
#     {
#       "id": "loaderror",
#       "name": "LoadError",
#       "anchor": "class-loaderror",
#       "kind": "class"
#     },
#     {
#       "id": "processingerror",
#       "name": "ProcessingError",
#       "anchor": "class-processingerror",
#       "kind": "class"
#     },
#     {
#       "id": "checkpointioerror",
#       "name": "CheckpointIOError",
#       "anchor": "class-checkpointioerror",
#       "kind": "class"
#     },
#     {
#       "id": "aggregationerror",
#       "name": "AggregationError",
#       "anchor": "class-aggregationerror",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Exception taxonomy raised by the refinement orchestration engine.

Every failure the engine can surface derives from :class:`RefinementError` so
the CLI can map the whole family onto a single exit code while still logging a
category-specific ``error_code``. Propagation rules:

- ``InputDiscoveryError`` aborts before any work is scheduled.
- ``LoadError`` is raised only after the generic fallback deserializer failed.
- ``ProcessingError`` wraps a refiner failure for one item; whether it aborts
  the chunk depends on the configured chunk policy.
- ``CheckpointIOError`` is always fatal: a corrupt checkpoint is never
  discarded silently.
- ``AggregationError`` flags a diagnostic value with an unsupported shape.
"""

from __future__ import annotations

__all__ = [
    "AggregationError",
    "CheckpointIOError",
    "InputDiscoveryError",
    "LoadError",
    "ProcessingError",
    "RefinementError",
]


class RefinementError(Exception):
    """Base class for all refinement engine failures."""

    error_code = "REFINEMENT"


class InputDiscoveryError(RefinementError):
    """Source directory missing or unreadable."""

    error_code = "INPUT_DISCOVERY"


class LoadError(RefinementError):
    """A raw model could not be deserialized by either loader path."""

    error_code = "LOAD"


class ProcessingError(RefinementError):
    """The refiner (or its loader) failed for a single item."""

    error_code = "PROCESSING"

    def __init__(self, canonical_id: str, message: str) -> None:
        super().__init__(f"{canonical_id}: {message}")
        self.canonical_id = canonical_id
        self.message = message

    def __reduce__(self):
        # Keep the two-argument constructor picklable across process pools.
        return (type(self), (self.canonical_id, self.message))


class CheckpointIOError(RefinementError):
    """Checkpoint could not be read, parsed, or written."""

    error_code = "CHECKPOINT_IO"


class AggregationError(RefinementError):
    """A diagnostic value has a shape the aggregator cannot tabulate."""

    error_code = "AGGREGATION"
