# === NAVMAP v1 ===
# {
#   "module": "DraftsToRecon.Refinement.cli",
#   "purpose": "Typer command-line interface for refinement runs.",
#   "sections": [
#     {
#       "id": "build-settings",
#       "name": "_build_settings",
#       "anchor": "function-build-settings",
#       "kind": "function"
#     },
#     {
#       "id": "run",
#       "name": "run",
#       "anchor": "function-run",
#       "kind": "function"
#     },
#     {
#       "id": "plan",
#       "name": "plan",
#       "anchor": "function-plan",
#       "kind": "function"
#     },
#     {
#       "id": "reports",
#       "name": "reports",
#       "anchor": "function-reports",
#       "kind": "function"
#     },
#     {
#       "id": "status",
#       "name": "status",
#       "anchor": "function-status",
#       "kind": "function"
#     },
#     {
#       "id": "main",
#       "name": "main",
#       "anchor": "function-main",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Typer command-line interface for refinement runs.

Options left unset on the command line fall through to ``DRAFTSTORECON_*``
environment variables and then to the settings defaults. Exit codes: ``0``
success, ``1`` invalid options or configuration, ``2`` a run that stopped on
(or recorded) item failures or hit another engine error.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
from pydantic import ValidationError

from DraftsToRecon.Refinement import __version__
from DraftsToRecon.Refinement.cli_errors import (
    RefinementCLIValidationError,
    TOOLKIT_HINT,
    format_cli_error,
)
from DraftsToRecon.Refinement.errors import RefinementError
from DraftsToRecon.Refinement.io import load_manifest_index, resolve_manifest_path
from DraftsToRecon.Refinement.logging import configure_logging, get_logger, log_event
from DraftsToRecon.Refinement.pipeline import plan_run, rebuild_reports, run_pipeline
from DraftsToRecon.Refinement.settings import RefinementSettings
from DraftsToRecon.Refinement.toolkit import resolve_toolkit

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
    help="Refine draft reconstructions in resumable, checkpointed chunks.",
)

__all__ = ["app", "main"]

EXIT_INVALID = 1
EXIT_FAILED = 2

_OPTION_NAMES = {
    "translate_models": "--translate",
    "refined_dir": "--refined-dir",
    "translated_dir": "--translated-dir",
    "summary_dir": "--summary-dir",
    "item_info_file": "--info-file",
    "reference_data_dir": "--reference-data-dir",
    "workers": "--workers",
    "policy": "--policy",
    "chunk_policy": "--chunk-policy",
    "resource_version": "--resource-version",
    "export_secondary": "--export-secondary",
    "solver": "--solver",
    "anomaly_fields": "--anomaly-fields",
    "log_level": "--log-level",
    "log_format": "--log-format",
}


def _build_settings(**overrides: Any) -> RefinementSettings:
    """Create settings from explicit CLI values layered over the environment."""

    explicit = {key: value for key, value in overrides.items() if value is not None}
    try:
        return RefinementSettings(**explicit)
    except ValidationError as exc:
        error = exc.errors()[0]
        field_name = str(error["loc"][0]) if error.get("loc") else "settings"
        raise RefinementCLIValidationError(
            option=_OPTION_NAMES.get(field_name, field_name),
            message=str(error.get("msg", "invalid value")),
        ) from exc


def _fail(error: RefinementCLIValidationError) -> NoReturn:
    typer.secho(format_cli_error(error), err=True, fg=typer.colors.RED)
    raise typer.Exit(code=EXIT_INVALID)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"drafts-to-recon {__version__}")
        raise typer.Exit()


@app.callback()
def _root(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the package version and exit.",
        ),
    ] = False,
) -> None:
    """Refinement pipeline commands."""


@app.command()
def run(
    source_dir: Annotated[Path, typer.Argument(help="Folder with draft reconstructions")],
    toolkit: Annotated[
        str, typer.Option("--toolkit", help="Model toolkit as 'module:attr'")
    ],
    translate: Annotated[
        Optional[bool],
        typer.Option("--translate/--no-translate", help="Translate SBML drafts"),
    ] = None,
    refined_dir: Annotated[
        Optional[Path], typer.Option("--refined-dir", help="Refined model folder")
    ] = None,
    translated_dir: Annotated[
        Optional[Path], typer.Option("--translated-dir", help="Translated draft folder")
    ] = None,
    summary_dir: Annotated[
        Optional[Path], typer.Option("--summary-dir", help="Checkpoint and report folder")
    ] = None,
    info_file: Annotated[
        Optional[Path], typer.Option("--info-file", help="Curated information file")
    ] = None,
    reference_data_dir: Annotated[
        Optional[Path],
        typer.Option("--reference-data-dir", help="Experimental data and databases"),
    ] = None,
    workers: Annotated[
        Optional[int], typer.Option("--workers", help="Parallel workers per chunk")
    ] = None,
    policy: Annotated[
        Optional[str], typer.Option("--policy", help="Executor policy (io|cpu)")
    ] = None,
    chunk_policy: Annotated[
        Optional[str],
        typer.Option("--chunk-policy", help="Failure policy (fail_fast|continue)"),
    ] = None,
    resource_version: Annotated[
        Optional[str],
        typer.Option("--resource-version", help="Name of the refined resource"),
    ] = None,
    export_secondary: Annotated[
        Optional[bool],
        typer.Option(
            "--export-secondary/--no-export-secondary",
            help="Export refined models to the secondary format",
        ),
    ] = None,
    solver: Annotated[
        Optional[str], typer.Option("--solver", help="Solver for worker contexts")
    ] = None,
    anomaly_fields: Annotated[
        Optional[str],
        typer.Option(
            "--anomaly-fields", help="Comma-separated fields pooled into one deduplicated list"
        ),
    ] = None,
    log_level: Annotated[
        Optional[str], typer.Option("--log-level", help="DEBUG|INFO|WARNING|ERROR")
    ] = None,
    log_format: Annotated[
        Optional[str], typer.Option("--log-format", help="console|json")
    ] = None,
) -> None:
    """Refine every draft under SOURCE_DIR that has no refined artifact yet."""

    try:
        settings = _build_settings(
            translate_models=translate,
            refined_dir=refined_dir,
            translated_dir=translated_dir,
            summary_dir=summary_dir,
            item_info_file=info_file,
            reference_data_dir=reference_data_dir,
            workers=workers,
            policy=policy,
            chunk_policy=chunk_policy,
            resource_version=resource_version,
            export_secondary=export_secondary,
            solver=solver,
            anomaly_fields=anomaly_fields,
            log_level=log_level.upper() if log_level else None,
            log_format=log_format.lower() if log_format else None,
        )
    except RefinementCLIValidationError as error:
        _fail(error)

    configure_logging(settings.log_level.value, settings.log_format.value)
    logger = get_logger(__name__, base_fields={"stage": "cli"})

    try:
        model_toolkit = resolve_toolkit(toolkit)
    except (ImportError, TypeError, ValueError) as exc:
        _fail(
            RefinementCLIValidationError(option="--toolkit", message=str(exc), hint=TOOLKIT_HINT)
        )

    try:
        result = run_pipeline(source_dir, settings, model_toolkit)
    except RefinementError as exc:
        log_event(
            logger,
            "error",
            "refinement run failed",
            item_id=getattr(exc, "canonical_id", "__run__"),
            error=str(exc),
            error_code=exc.error_code,
        )
        typer.secho(f"✗ {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_FAILED)

    outcome = result.outcome
    typer.echo(
        f"refined {outcome.succeeded} of {outcome.scheduled} pending model(s) "
        f"in {outcome.chunks} chunk(s); {outcome.failed} failed; "
        f"{len(result.reports)} report(s) in {result.summary_dir}"
    )
    if result.export_dir is not None:
        typer.echo(f"secondary export: {result.export_dir}")
    if outcome.failed:
        raise typer.Exit(code=EXIT_FAILED)


@app.command()
def plan(
    source_dir: Annotated[Path, typer.Argument(help="Folder with draft reconstructions")],
    refined_dir: Annotated[
        Optional[Path], typer.Option("--refined-dir", help="Refined model folder")
    ] = None,
) -> None:
    """Show what a run would process, without refining anything."""

    try:
        settings = _build_settings(refined_dir=refined_dir)
        configure_logging(settings.log_level.value, settings.log_format.value)
        run_plan = plan_run(source_dir, settings)
    except RefinementCLIValidationError as error:
        _fail(error)
    except RefinementError as exc:
        typer.secho(f"✗ {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_FAILED)

    typer.echo(f"discovered: {len(run_plan.items)}")
    typer.echo(f"completed:  {len(run_plan.items) - len(run_plan.pending)}")
    typer.echo(f"pending:    {len(run_plan.pending)}")
    if run_plan.pending:
        sizes = run_plan.chunk_sizes
        typer.echo(f"chunks:     {len(sizes)} (size {run_plan.chunk_size}, last {sizes[-1]})")


@app.command()
def reports(
    summary_dir: Annotated[
        Optional[Path], typer.Option("--summary-dir", help="Checkpoint and report folder")
    ] = None,
    resource_version: Annotated[
        Optional[str],
        typer.Option("--resource-version", help="Name of the refined resource"),
    ] = None,
    anomaly_fields: Annotated[
        Optional[str],
        typer.Option(
            "--anomaly-fields", help="Comma-separated fields pooled into one deduplicated list"
        ),
    ] = None,
) -> None:
    """Rebuild every field report from the checkpoint."""

    try:
        settings = _build_settings(
            summary_dir=summary_dir,
            resource_version=resource_version,
            anomaly_fields=anomaly_fields,
        )
        configure_logging(settings.log_level.value, settings.log_format.value)
        written = rebuild_reports(
            settings.summary_dir, settings.resource_version, settings.anomaly_fields
        )
    except RefinementCLIValidationError as error:
        _fail(error)
    except RefinementError as exc:
        typer.secho(f"✗ {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_FAILED)
    for path in written:
        typer.echo(str(path))


@app.command()
def status(
    summary_dir: Annotated[
        Optional[Path], typer.Option("--summary-dir", help="Checkpoint and report folder")
    ] = None,
    resource_version: Annotated[
        Optional[str],
        typer.Option("--resource-version", help="Name of the refined resource"),
    ] = None,
) -> None:
    """Summarise the latest manifest status of every item."""

    try:
        settings = _build_settings(summary_dir=summary_dir, resource_version=resource_version)
    except RefinementCLIValidationError as error:
        _fail(error)
    index = load_manifest_index(
        resolve_manifest_path(settings.summary_dir, settings.resource_version)
    )
    counts = Counter(str(entry.get("status", "unknown")) for entry in index.values())
    typer.echo(f"items: {len(index)}")
    for state in sorted(counts):
        typer.echo(f"{state}: {counts[state]}")
    failed = sorted(item_id for item_id, entry in index.items() if entry.get("status") == "failure")
    for item_id in failed:
        typer.echo(f"  ✗ {item_id}: {index[item_id].get('error', '')}")


def main() -> None:
    """Console-script entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
