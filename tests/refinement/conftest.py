"""Shared fixtures for the refinement test-suite."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from DraftsToRecon.Refinement.core.worker import reset_worker_context
from DraftsToRecon.Refinement.settings import RefinementSettings
from refine_fakes import FakeToolkit


@pytest.fixture(autouse=True)
def _isolate_process_state(monkeypatch):
    """Drop cached worker contexts and CLI log handlers between tests."""

    for name in list(os.environ):
        if name.startswith("DRAFTSTORECON_"):
            monkeypatch.delenv(name)
    reset_worker_context()
    yield
    reset_worker_context()
    root = logging.getLogger("DraftsToRecon")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
    root.propagate = True


@pytest.fixture
def toolkit() -> FakeToolkit:
    return FakeToolkit()


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    path = tmp_path / "drafts"
    path.mkdir()
    return path


@pytest.fixture
def make_settings(tmp_path: Path):
    """Build settings whose output folders all live under ``tmp_path``."""

    def _factory(**overrides) -> RefinementSettings:
        values = {
            "refined_dir": tmp_path / "refined",
            "translated_dir": tmp_path / "translated",
            "summary_dir": tmp_path / "summary",
            "workers": 1,
        }
        values.update(overrides)
        return RefinementSettings(**values)

    return _factory
