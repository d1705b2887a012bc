"""Lazy package facade."""

from __future__ import annotations

import pytest

import DraftsToRecon.Refinement as refinement
from refine_fakes import FakeToolkit, write_draft


def test_lazy_submodules_resolve():
    assert refinement.core.chunk_size_for(10) == 25
    assert refinement.settings.RefinementSettings.__name__ == "RefinementSettings"
    assert "pipeline" in dir(refinement)


def test_unknown_attribute():
    with pytest.raises(AttributeError):
        refinement.does_not_exist  # noqa: B018


def test_run_pipeline_proxy(source_dir, make_settings):
    write_draft(source_dir, "a.mat", diagnostics={"reactions": 1})
    result = refinement.run_pipeline(source_dir, make_settings(), FakeToolkit())
    assert result.outcome.succeeded == 1
