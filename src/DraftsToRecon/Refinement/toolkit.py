"""Protocol definitions for the external model toolkit.

The engine never loads, refines, translates, or writes a reconstruction
itself. Those capabilities come from a toolkit object supplied by the caller
(``--toolkit module:attr`` on the command line). This module codifies the
contract with ``typing.Protocol`` so integrators get static checking, and
provides the loader-with-fallback and dotted-path resolution used by the
pipeline.
"""

from __future__ import annotations

import importlib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from DraftsToRecon.Refinement.errors import LoadError

__all__ = [
    "RefinementToolkit",
    "load_model",
    "resolve_toolkit",
]


@runtime_checkable
class RefinementToolkit(Protocol):
    """Capabilities the refinement engine consumes as opaque functions."""

    def read_model(self, path: Path) -> Any:
        """Deserialize a draft model with the primary, format-aware reader."""

    def load_generic(self, path: Path) -> Any:
        """Fallback deserializer used when :meth:`read_model` fails."""

    def prepare_worker(self, config: Any) -> Any:
        """Build the per-worker execution context (solver setup and the like)."""

    def refine(
        self,
        raw_model: Any,
        canonical_id: str,
        *,
        info_file: Optional[Path],
        reference_dir: Optional[Path],
        translate: bool,
        context: Any,
    ) -> tuple[Any, Mapping[str, Any]]:
        """Return ``(refined_model, diagnostics)`` for one draft."""

    def translate(self, raw_model: Any) -> Any:
        """Return the draft converted to the target nomenclature."""

    def write_model(self, model: Any, path: Path) -> None:
        """Serialize ``model`` to ``path``."""

    def export_secondary(self, refined_dir: Path, export_dir: Path) -> Path:
        """Export every refined model to the secondary format; return the folder."""


def load_model(path: Path, toolkit: RefinementToolkit) -> Any:
    """Load ``path`` via the primary reader, falling back once to the generic one.

    Raises:
        LoadError: both loader paths failed. The generic failure is chained
            and the primary failure is included in the message.
    """

    try:
        return toolkit.read_model(path)
    except Exception as primary:
        try:
            return toolkit.load_generic(path)
        except Exception as fallback:
            raise LoadError(
                f"Unable to load {path}: primary reader failed ({primary}); "
                f"generic loader failed ({fallback})"
            ) from fallback


def resolve_toolkit(reference: str) -> RefinementToolkit:
    """Import the toolkit referenced by ``reference`` (``'module:attr'``).

    Classes are instantiated without arguments, other callables are invoked as
    zero-argument factories, and plain objects are used as-is.
    """

    if ":" not in reference:
        raise ValueError(f"expected 'module:attr' but received {reference!r}")
    module_name, attr_name = reference.split(":", 1)
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ImportError(f"Unable to import toolkit module '{module_name}'") from exc
    try:
        target = getattr(module, attr_name)
    except AttributeError as exc:
        raise ImportError(f"Toolkit '{attr_name}' not found in module '{module_name}'") from exc

    if isinstance(target, type):
        toolkit = target()
    elif callable(target) and not isinstance(target, RefinementToolkit):
        toolkit = target()
    else:
        toolkit = target
    if not isinstance(toolkit, RefinementToolkit):
        raise TypeError(f"{reference!r} does not provide a RefinementToolkit")
    return toolkit
