# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.concurrency.__init__",
#   "purpose": "Concurrency helpers shared across DraftsToRecon components.",
#   "sections": []
# }
# === /NAVMAP ===

"""
Concurrency helpers shared across DraftsToRecon components.

Exposes :func:`create_executor`, which maps the refinement policy names onto
executor implementations (io → threads, cpu → spawned processes) and sizes
the pool to the widest chunk.
"""

from .executors import PoolHandle, create_executor

__all__ = ["PoolHandle", "create_executor"]
