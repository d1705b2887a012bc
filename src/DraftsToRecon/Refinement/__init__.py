# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement",
#   "purpose": "Refinement package facade with lazy loading.",
#   "sections": []
# }
# === /NAVMAP ===

"""Refinement package facade with lazy loading.

Exposes ``core``, ``pipeline``, ``settings`` and ``cli`` as attributes that
are imported on first access, plus a :func:`run_pipeline` proxy, so importing
the package stays cheap for callers that only need the core helpers (worker
processes in particular).
"""

from __future__ import annotations

from importlib import import_module
from types import ModuleType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - import-time hints only
    from . import cli as cli  # noqa: F401
    from . import core as core  # noqa: F401
    from . import pipeline as pipeline  # noqa: F401
    from . import settings as settings  # noqa: F401

__version__ = "0.3.0"

_LAZY_ATTR_MODULES: dict[str, str] = {
    "cli": "DraftsToRecon.Refinement.cli",
    "core": "DraftsToRecon.Refinement.core",
    "pipeline": "DraftsToRecon.Refinement.pipeline",
    "settings": "DraftsToRecon.Refinement.settings",
}

_MODULE_CACHE: dict[str, ModuleType] = {}

__all__ = [
    "__version__",
    "cli",
    "core",
    "pipeline",
    "run_pipeline",
    "settings",
]


def _load_module(name: str) -> ModuleType:
    """Load a module by name, using cache for performance."""
    if name in _MODULE_CACHE:
        return _MODULE_CACHE[name]
    module = import_module(_LAZY_ATTR_MODULES[name])
    globals()[name] = module
    _MODULE_CACHE[name] = module
    return module


def __getattr__(name: str) -> Any:
    """Dynamically import submodules only when they are requested."""

    if name in _LAZY_ATTR_MODULES:
        return _load_module(name)
    raise AttributeError(f"module 'DraftsToRecon.Refinement' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Ensure lazily exposed attributes appear in :func:`dir` results."""

    return sorted(set(globals()) | set(_LAZY_ATTR_MODULES))


def run_pipeline(*args, **kwargs):
    """Proxy to :func:`DraftsToRecon.Refinement.pipeline.run_pipeline`."""

    function = _load_module("pipeline").run_pipeline
    globals()["run_pipeline"] = function
    return function(*args, **kwargs)
