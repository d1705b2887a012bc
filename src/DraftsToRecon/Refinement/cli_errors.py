# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.cli_errors",
#   "purpose": "Option validation errors raised by the refinement CLI.",
#   "sections": [
#     {
#       "id": "clivalidationerror",
#       "name": "CLIValidationError",
#       "anchor": "class-clivalidationerror",
#       "kind": "class"
#     },
#     {
#       "id": "refinementclivalidationerror",
#       "name": "RefinementCLIValidationError",
#       "anchor": "class-refinementclivalidationerror",
#       "kind": "class"
#     },
#     {
#       "id": "format-cli-error",
#       "name": "format_cli_error",
#       "anchor": "function-format-cli-error",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Option validation errors raised by the refinement CLI.

A rejected ``--toolkit`` reference or a setting that pydantic refuses is
reported on one line, ``[refine] --option: message. Hint: ...``, before any
draft is touched. Scripts wrapping the CLI can match on the bracketed stage
and the option name.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

__all__ = [
    "CLIValidationError",
    "RefinementCLIValidationError",
    "TOOLKIT_HINT",
    "format_cli_error",
]

TOOLKIT_HINT = "pass an importable 'package.module:Toolkit' reference"


@dataclass(slots=True)
class CLIValidationError(ValueError):
    """Rejected command-line option with an optional remediation hint."""

    option: str
    message: str
    hint: Optional[str] = None
    stage: str = "cli"

    def __post_init__(self) -> None:
        ValueError.__init__(self, self.message)

    def __str__(self) -> str:
        return self.message


class RefinementCLIValidationError(CLIValidationError):
    """Validation error tagged with the ``refine`` stage."""

    def __post_init__(self) -> None:
        self.stage = "refine"
        CLIValidationError.__post_init__(self)


def format_cli_error(error: CLIValidationError) -> str:
    """Render ``error`` as ``[stage] option: message. Hint: hint``."""

    text = f"[{error.stage}] {error.option}: {error.message.rstrip('.')}."
    if error.hint:
        text = f"{text} Hint: {error.hint}"
    return text
