"""Settings validation, environment overrides and derived options."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from DraftsToRecon.Refinement.core.runner import ChunkPolicy
from DraftsToRecon.Refinement.settings import LogFormat, RefinementSettings, RunnerPolicy


def test_defaults():
    settings = RefinementSettings()
    assert settings.translate_models is True
    assert settings.refined_dir == Path("refinedReconstructions").resolve()
    assert settings.summary_dir.name == "refinementSummary"
    assert settings.item_info_file is None
    assert settings.workers == 2
    assert settings.policy is RunnerPolicy.IO
    assert settings.chunk_policy is ChunkPolicy.FAIL_FAST
    assert settings.resource_version == "Reconstructions"
    assert settings.anomaly_fields == ("untranslatedMets", "untranslatedRxns")
    assert settings.log_format is LogFormat.CONSOLE


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("DRAFTSTORECON_WORKERS", "6")
    monkeypatch.setenv("DRAFTSTORECON_POLICY", "cpu")
    monkeypatch.setenv("DRAFTSTORECON_REFINED_DIR", str(tmp_path / "out"))
    monkeypatch.setenv("DRAFTSTORECON_ANOMALY_FIELDS", "gaps, orphans")
    monkeypatch.setenv("DRAFTSTORECON_TRANSLATE_MODELS", "false")

    settings = RefinementSettings()

    assert settings.workers == 6
    assert settings.policy is RunnerPolicy.CPU
    assert settings.refined_dir == tmp_path / "out"
    assert settings.anomaly_fields == ("gaps", "orphans")
    assert settings.translate_models is False


def test_explicit_values_beat_environment(monkeypatch):
    monkeypatch.setenv("DRAFTSTORECON_WORKERS", "6")
    assert RefinementSettings(workers=1).workers == 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"workers": -1},
        {"policy": "gpu"},
        {"chunk_policy": "sometimes"},
        {"resource_version": "../escape"},
        {"resource_version": ""},
    ],
)
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValidationError):
        RefinementSettings(**overrides)


def test_home_expansion(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    settings = RefinementSettings(summary_dir="~/summary")
    assert settings.summary_dir == tmp_path / "summary"


def test_derived_options(tmp_path):
    settings = RefinementSettings(
        refined_dir=tmp_path / "refined",
        reference_data_dir=tmp_path / "refs",
        workers=4,
        policy="cpu",
        chunk_policy="continue",
        solver="glpk",
    )

    assert settings.export_dir == tmp_path / "refined_SBML"

    config = settings.to_refine_config(tmp_path / "info.tsv")
    assert config.info_file == tmp_path / "info.tsv"
    assert config.reference_dir == tmp_path / "refs"
    assert config.translate is True
    assert config.solver == "glpk"
    assert settings.to_refine_config().info_file is None

    options = settings.to_scheduler_options()
    assert options.workers == 4
    assert options.policy == "cpu"
    assert options.chunk_policy is ChunkPolicy.CONTINUE


def test_config_hash_tracks_values(tmp_path):
    first = RefinementSettings(refined_dir=tmp_path / "r")
    same = RefinementSettings(refined_dir=tmp_path / "r")
    other = RefinementSettings(refined_dir=tmp_path / "r", workers=8)
    assert first.config_hash() == same.config_hash()
    assert first.config_hash() != other.config_hash()
    assert len(first.config_hash()) == 16
