"""
Settings models for the refinement pipeline.

Configuration is layered the usual pydantic-settings way: explicit keyword
arguments (the CLI passes only the options the user actually set) override
``DRAFTSTORECON_*`` environment variables, which override the defaults
below. Validation happens once, up front, so a bad worker count or an unsafe
resource version name is reported before any model is loaded.

Models:
- LogLevel / LogFormat / RunnerPolicy: validated enum choices
- RefinementSettings: every knob of a pipeline run
"""

from __future__ import annotations

import hashlib
import json
import re
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from DraftsToRecon.Refinement.core.aggregate import DEFAULT_ANOMALY_FIELDS
from DraftsToRecon.Refinement.core.runner import ChunkPolicy, SchedulerOptions
from DraftsToRecon.Refinement.core.worker import RefineConfig

__all__ = [
    "LogFormat",
    "LogLevel",
    "RefinementSettings",
    "RunnerPolicy",
]

_VERSION_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Supported log output formats."""

    CONSOLE = "console"
    JSON = "json"


class RunnerPolicy(str, Enum):
    """Executor flavour used inside a chunk."""

    IO = "io"
    CPU = "cpu"


class RefinementSettings(BaseSettings):
    """Every option of a refinement pipeline run."""

    model_config = SettingsConfigDict(
        env_prefix="DRAFTSTORECON_",
        case_sensitive=False,
        extra="ignore",
    )

    translate_models: bool = Field(
        True, description="Translate SBML drafts into the target nomenclature"
    )
    refined_dir: Path = Field(
        Path("refinedReconstructions"), description="Folder receiving refined models"
    )
    translated_dir: Path = Field(
        Path("translatedDraftReconstructions"),
        description="Folder receiving translated SBML drafts",
    )
    summary_dir: Path = Field(
        Path("refinementSummary"),
        description="Folder receiving the checkpoint, manifest and field reports",
    )
    item_info_file: Path | None = Field(
        None, description="Curated information file; auto-generated when omitted"
    )
    reference_data_dir: Path | None = Field(
        None, description="Folder with experimental data and reference databases"
    )
    workers: int = Field(2, ge=0, description="Parallel workers per chunk (0/1 = inline)")
    policy: RunnerPolicy = Field(
        RunnerPolicy.IO, description="io = thread pool, cpu = spawned process pool"
    )
    chunk_policy: ChunkPolicy = Field(
        ChunkPolicy.FAIL_FAST,
        description="fail_fast stops at the first failed item; continue records it",
    )
    resource_version: str = Field(
        "Reconstructions", description="Name of the refined reconstruction resource"
    )
    export_secondary: bool = Field(
        False, description="Export refined models to the secondary format afterwards"
    )
    solver: str | None = Field(None, description="Solver name handed to worker contexts")
    anomaly_fields: Annotated[tuple[str, ...], NoDecode] = Field(
        DEFAULT_ANOMALY_FIELDS,
        description="Diagnostic fields pooled into a single deduplicated worklist",
    )
    log_level: LogLevel = Field(LogLevel.INFO, description="Root logging level")
    log_format: LogFormat = Field(
        LogFormat.CONSOLE, description="Pretty console or structured JSON"
    )

    @field_validator(
        "refined_dir",
        "translated_dir",
        "summary_dir",
        "item_info_file",
        "reference_data_dir",
        mode="before",
    )
    @classmethod
    def expand_paths(cls, v: Any) -> Any:
        """Expand user home and make absolute."""
        if v is None or v == "":
            return None
        return Path(v).expanduser().resolve()

    @field_validator("resource_version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Version names end up in file names; keep them filesystem-safe."""
        if not _VERSION_PATTERN.match(v):
            raise ValueError(
                "resource_version must start with a letter or digit and contain only "
                "letters, digits, '.', '_' or '-'"
            )
        return v

    @field_validator("anomaly_fields", mode="before")
    @classmethod
    def split_fields(cls, v: Any) -> Any:
        """Accept a comma-separated string (environment variables)."""
        if isinstance(v, str):
            return tuple(part.strip() for part in v.split(",") if part.strip())
        return v

    @property
    def export_dir(self) -> Path:
        """Destination of the optional secondary-format export."""

        return self.refined_dir.with_name(f"{self.refined_dir.name}_SBML")

    def to_refine_config(self, info_file: Path | None = None) -> RefineConfig:
        """Return the immutable per-task configuration handed to workers."""

        return RefineConfig(
            info_file=info_file if info_file is not None else self.item_info_file,
            reference_dir=self.reference_data_dir,
            translate=self.translate_models,
            solver=self.solver,
        )

    def to_scheduler_options(self) -> SchedulerOptions:
        return SchedulerOptions(
            workers=self.workers,
            policy=self.policy.value,
            chunk_policy=self.chunk_policy,
        )

    def config_hash(self) -> str:
        """Stable digest of the settings, recorded in the run manifest."""

        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]
