"""End-to-end pipeline runs with the fake toolkit."""

from __future__ import annotations

import json

import pytest

from DraftsToRecon.Refinement.core.checkpoint import CheckpointStore
from DraftsToRecon.Refinement.core.manifest import read_item_info
from DraftsToRecon.Refinement.errors import CheckpointIOError, ProcessingError
from DraftsToRecon.Refinement.io import load_manifest_index, resolve_manifest_path
from DraftsToRecon.Refinement.pipeline import plan_run, rebuild_reports, run_pipeline
from refine_fakes import FakeToolkit, write_draft


def _seed_drafts(source_dir, **overrides):
    drafts = {
        "a.xml": {"diagnostics": {"reactions": 10, "untranslatedMets": ["m2", "m1"]}},
        "b.sbml": {"diagnostics": {"reactions": [11, 12], "untranslatedMets": ["m1"]}},
        "c.mat": {"diagnostics": {"reactions": 13}},
    }
    for name, payload in drafts.items():
        write_draft(source_dir, name, **dict(payload, **overrides.get(name, {})))
    (source_dir / ".DS_Store").write_text("junk", encoding="utf-8")


def test_full_run_writes_every_artifact(source_dir, make_settings, toolkit):
    _seed_drafts(source_dir)
    settings = make_settings()

    result = run_pipeline(source_dir, settings, toolkit)

    assert result.outcome.succeeded == 3
    assert result.outcome.failed == 0
    assert result.registry_size == 3
    assert sorted(p.name for p in settings.refined_dir.glob("*.mat")) == ["a.mat", "b.mat", "c.mat"]
    assert sorted(p.name for p in settings.translated_dir.glob("*.mat")) == ["a.mat", "b.mat"]
    assert not any((settings.refined_dir / ".partial").iterdir())

    info_file = settings.summary_dir / "infoFile.tsv"
    assert read_item_info(info_file) == ["a", "b", "c"]
    refined_a = json.loads((settings.refined_dir / "a.mat").read_text(encoding="utf-8"))
    assert refined_a["info_file"] == str(info_file)

    assert [p.name for p in result.reports] == ["reactions.tsv", "untranslatedMets.tsv"]
    assert (settings.summary_dir / "reactions.tsv").read_text(encoding="utf-8") == (
        "a\t10\t\nb\t11\t12\nc\t13\t\n"
    )
    assert (settings.summary_dir / "untranslatedMets.tsv").read_text(encoding="utf-8") == "m1\nm2\n"

    index = load_manifest_index(resolve_manifest_path(settings.summary_dir, "Reconstructions"))
    assert {key: entry["status"] for key, entry in index.items()} == {
        "a": "success",
        "b": "success",
        "c": "success",
    }
    assert index["a"]["translated"] is True
    assert index["c"]["translated"] is False


def test_rerun_is_idempotent(source_dir, make_settings, toolkit):
    _seed_drafts(source_dir)
    settings = make_settings()
    run_pipeline(source_dir, settings, toolkit)
    before = (settings.summary_dir / "reactions.tsv").read_text(encoding="utf-8")

    second = FakeToolkit()
    result = run_pipeline(source_dir, settings, second)

    assert second.refined == []
    assert result.outcome.scheduled == 0
    assert result.registry_size == 3
    assert (settings.summary_dir / "reactions.tsv").read_text(encoding="utf-8") == before


def test_fail_fast_keeps_committed_work_and_resumes(source_dir, make_settings, toolkit):
    _seed_drafts(source_dir, **{"b.sbml": {"refine_fails": True}})
    settings = make_settings()

    with pytest.raises(ProcessingError) as excinfo:
        run_pipeline(source_dir, settings, toolkit)

    assert excinfo.value.canonical_id == "b"
    assert [p.name for p in settings.refined_dir.glob("*.mat")] == ["a.mat"]
    assert list(CheckpointStore(settings.summary_dir, "Reconstructions").load()) == ["a"]

    write_draft(source_dir, "b.sbml", diagnostics={"reactions": 2})
    retry = FakeToolkit()
    result = run_pipeline(source_dir, settings, retry)

    assert retry.refined == ["b", "c"]
    assert result.registry_size == 3
    assert sorted(p.name for p in settings.refined_dir.glob("*.mat")) == ["a.mat", "b.mat", "c.mat"]


def test_continue_policy_records_failures(source_dir, make_settings, toolkit):
    _seed_drafts(source_dir, **{"b.sbml": {"refine_fails": True}})
    settings = make_settings(chunk_policy="continue")

    result = run_pipeline(source_dir, settings, toolkit)

    assert result.outcome.succeeded == 2
    assert result.outcome.failed == 1
    assert result.registry_size == 2
    index = load_manifest_index(resolve_manifest_path(settings.summary_dir, "Reconstructions"))
    assert index["b"]["status"] == "failure"
    assert "refiner exploded" in index["b"]["error"]
    assert not (settings.refined_dir / "b.mat").exists()


def test_corrupt_checkpoint_aborts_before_refining(source_dir, make_settings, toolkit):
    _seed_drafts(source_dir)
    settings = make_settings()
    settings.summary_dir.mkdir(parents=True)
    (settings.summary_dir / "summaries_Reconstructions.json").write_text("{oops", encoding="utf-8")

    with pytest.raises(CheckpointIOError):
        run_pipeline(source_dir, settings, toolkit)

    assert toolkit.refined == []


def test_curated_info_file_and_no_translation(source_dir, make_settings, toolkit, tmp_path):
    _seed_drafts(source_dir)
    curated = tmp_path / "curated.tsv"
    curated.write_text("MicrobeID\tPhylum\na\tBacteroidetes\n", encoding="utf-8")
    settings = make_settings(item_info_file=curated, translate_models=False)

    run_pipeline(source_dir, settings, toolkit)

    assert not (settings.summary_dir / "infoFile.tsv").exists()
    assert not settings.translated_dir.exists()
    refined_b = json.loads((settings.refined_dir / "b.mat").read_text(encoding="utf-8"))
    assert refined_b["info_file"] == str(curated)


def test_secondary_export(source_dir, make_settings, toolkit):
    _seed_drafts(source_dir)
    settings = make_settings(export_secondary=True)

    result = run_pipeline(source_dir, settings, toolkit)

    assert result.export_dir == settings.refined_dir.with_name("refined_SBML")
    assert sorted(p.name for p in result.export_dir.iterdir()) == ["a.xml", "b.xml", "c.xml"]


def test_threaded_run_across_chunks(source_dir, make_settings, toolkit):
    for index in range(30):
        write_draft(source_dir, f"strain_{index:02d}.xml", diagnostics={"reactions": index})
    settings = make_settings(workers=3)

    result = run_pipeline(source_dir, settings, toolkit)

    assert result.outcome.chunks == 2
    assert result.outcome.succeeded == 30
    assert len(list(settings.refined_dir.glob("*.mat"))) == 30
    rows = (settings.summary_dir / "reactions.tsv").read_text(encoding="utf-8").splitlines()
    assert rows[0] == "strain_00\t0"
    assert rows[-1] == "strain_29\t29"


@pytest.mark.slow
def test_process_pool_run(source_dir, make_settings, toolkit):
    _seed_drafts(source_dir)
    settings = make_settings(workers=2, policy="cpu")

    result = run_pipeline(source_dir, settings, toolkit)

    assert result.outcome.succeeded == 3
    assert result.registry_size == 3


def test_plan_run_and_rebuild_reports(source_dir, make_settings, toolkit):
    _seed_drafts(source_dir)
    settings = make_settings()
    settings.refined_dir.mkdir(parents=True)
    (settings.refined_dir / "a.mat").write_text("{}", encoding="utf-8")

    run_plan = plan_run(source_dir, settings)
    assert [item.canonical_id for item in run_plan.pending] == ["b", "c"]
    assert run_plan.completed == frozenset({"a"})
    assert run_plan.chunk_sizes == [2]

    run_pipeline(source_dir, settings, toolkit)
    assert toolkit.refined == ["b", "c"]
    (settings.summary_dir / "reactions.tsv").unlink()

    written = rebuild_reports(settings.summary_dir, "Reconstructions", ("untranslatedMets",))

    assert sorted(p.name for p in written) == ["reactions.tsv", "untranslatedMets.tsv"]
    assert (settings.summary_dir / "reactions.tsv").read_text(encoding="utf-8") == (
        "b\t11\t12\nc\t13\t\n"
    )


def _snapshot(settings):
    registry = CheckpointStore(settings.summary_dir, "Reconstructions").load()
    reports = {
        path.name: path.read_text(encoding="utf-8")
        for path in sorted(settings.summary_dir.glob("*.tsv"))
    }
    return list(registry), registry.to_payload(), reports


def test_interrupted_and_resumed_run_matches_uninterrupted_run(source_dir, make_settings, tmp_path):
    def seed(broken: bool) -> None:
        for index in range(60):
            write_draft(
                source_dir,
                f"strain_{index:02d}.xml",
                refine_fails=broken and index == 30,
                diagnostics={
                    "reactions": index,
                    "fluxes": [index, index / 4],
                    "untranslatedMets": [f"m{index % 7}"],
                },
            )

    interrupted = make_settings()
    seed(broken=True)
    with pytest.raises(ProcessingError):
        run_pipeline(source_dir, interrupted, FakeToolkit())
    assert len(CheckpointStore(interrupted.summary_dir, "Reconstructions").load()) == 30

    seed(broken=False)
    resumed = run_pipeline(source_dir, interrupted, FakeToolkit())
    assert resumed.outcome.scheduled == 30

    straight = make_settings(
        refined_dir=tmp_path / "straight" / "refined",
        translated_dir=tmp_path / "straight" / "translated",
        summary_dir=tmp_path / "straight" / "summary",
    )
    run_pipeline(source_dir, straight, FakeToolkit())

    assert _snapshot(interrupted) == _snapshot(straight)
    assert sorted(p.name for p in interrupted.refined_dir.glob("*.mat")) == sorted(
        p.name for p in straight.refined_dir.glob("*.mat")
    )


def test_write_failure_under_continue_keeps_other_items(source_dir, make_settings):
    _seed_drafts(source_dir)
    settings = make_settings(chunk_policy="continue")

    result = run_pipeline(source_dir, settings, FakeToolkit(fail_writes=("a",)))

    assert result.outcome.succeeded == 2
    assert result.outcome.failed == 1
    assert sorted(p.name for p in settings.refined_dir.glob("*.mat")) == ["b.mat", "c.mat"]
    assert not (settings.translated_dir / "a.mat").exists()
    assert not any((settings.refined_dir / ".partial").iterdir())
    assert not any((settings.translated_dir / ".partial").iterdir())
    assert list(CheckpointStore(settings.summary_dir, "Reconstructions").load()) == ["b", "c"]
    index = load_manifest_index(resolve_manifest_path(settings.summary_dir, "Reconstructions"))
    assert index["a"]["status"] == "failure"
    assert "disk full" in index["a"]["error"]


def test_write_failure_under_fail_fast_raises_processing_error(source_dir, make_settings):
    _seed_drafts(source_dir)
    settings = make_settings()

    with pytest.raises(ProcessingError) as excinfo:
        run_pipeline(source_dir, settings, FakeToolkit(fail_writes=("a",)))

    assert excinfo.value.canonical_id == "a"
    assert isinstance(excinfo.value.__cause__, ProcessingError)
    assert isinstance(excinfo.value.__cause__.__cause__, OSError)
    assert not (settings.refined_dir / "a.mat").exists()
    assert "a" not in CheckpointStore(settings.summary_dir, "Reconstructions").load()
