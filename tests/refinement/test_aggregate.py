"""Per-field report construction and TSV output."""

from __future__ import annotations

from DraftsToRecon.Refinement.core.aggregate import (
    AnomalySet,
    FieldTable,
    aggregate,
    assign_report_filenames,
    format_cell,
    report_filename,
    write_reports,
)
from DraftsToRecon.Refinement.core.models import SummaryRegistry


def _registry(records: dict) -> SummaryRegistry:
    registry = SummaryRegistry()
    for canonical_id, record in records.items():
        registry.merge(canonical_id, record)
    return registry


def test_field_table_pads_to_widest_row():
    reports = aggregate(_registry({"id1": {"a": 5}, "id2": {"a": [1, 2]}}))

    table = reports["a"]
    assert isinstance(table, FieldTable)
    assert table.rows == (("id1", "5", ""), ("id2", "1", "2"))
    assert table.informative


def test_missing_field_yields_id_only_row():
    reports = aggregate(_registry({"id1": {"a": 1.0}, "id2": {"b": "x"}}))

    assert reports["a"].rows == (("id1", "1"), ("id2", ""))
    assert reports["b"].rows == (("id1", ""), ("id2", "x"))


def test_anomaly_fields_are_pooled_and_deduplicated():
    reports = aggregate(
        _registry(
            {
                "id1": {"untranslatedMets": ["b", "a"]},
                "id2": {"untranslatedMets": ["c", "b", ""]},
                "id3": {"reactions": 4},
            }
        )
    )

    anomalies = reports["untranslatedMets"]
    assert isinstance(anomalies, AnomalySet)
    assert anomalies.values == ("a", "b", "c")


def test_custom_anomaly_fields():
    reports = aggregate(
        _registry({"id1": {"gaps": ["r2", "r1"]}, "id2": {"gaps": "r1"}}),
        anomaly_fields=["gaps"],
    )
    assert reports["gaps"] == AnomalySet(field="gaps", values=("r1", "r2"))


def test_empty_fields_are_not_informative(tmp_path):
    reports = aggregate(
        _registry(
            {
                "id1": {"empty": [], "untranslatedRxns": [], "kept": 1},
                "id2": {"empty": None, "untranslatedRxns": []},
            }
        )
    )
    assert not reports["empty"].informative
    assert not reports["untranslatedRxns"].informative

    written = write_reports(reports, tmp_path)

    assert [path.name for path in written] == ["kept.tsv"]


def test_format_cell():
    assert format_cell(2.0) == "2"
    assert format_cell(0.5) == "0.5"
    assert format_cell(7) == "7"
    assert format_cell("x") == "x"
    assert format_cell(float("nan")) == "nan"


def test_report_filename_is_filesystem_safe():
    assert report_filename("growth rate/h") == "growth-rate-h.tsv"
    assert report_filename("  ") == "field.tsv"


def test_write_reports_tab_separated(tmp_path):
    reports = aggregate(
        _registry(
            {
                "id1": {"a": 5, "untranslatedMets": ["m2", "m1"]},
                "id2": {"a": [1, 2], "untranslatedMets": ["m1"]},
            }
        )
    )

    written = write_reports(reports, tmp_path / "summary")

    assert [path.name for path in written] == ["a.tsv", "untranslatedMets.tsv"]
    assert (tmp_path / "summary" / "a.tsv").read_text(encoding="utf-8") == "id1\t5\t\nid2\t1\t2\n"
    assert (tmp_path / "summary" / "untranslatedMets.tsv").read_text(encoding="utf-8") == "m1\nm2\n"


def test_aggregate_empty_registry():
    assert aggregate(SummaryRegistry()) == {}


def test_colliding_field_names_get_distinct_filenames():
    names = assign_report_filenames(["a b", "a-b", "infoFile", "reactions"])

    assert names["a b"] == "a-b.tsv"
    assert names["a-b"].startswith("a-b-") and names["a-b"].endswith(".tsv")
    assert names["infoFile"] != "infoFile.tsv"
    assert names["reactions"] == "reactions.tsv"
    assert len(set(names.values())) == 4
    assert assign_report_filenames(["a-b", "a b"]) == {key: names[key] for key in ("a b", "a-b")}


def test_write_reports_never_overwrites_info_file(tmp_path):
    (tmp_path / "infoFile.tsv").write_text("MicrobeID\nm1\n", encoding="utf-8")
    reports = aggregate(
        _registry({"m1": {"infoFile": 3, "a b": 1, "a-b": 2}}), anomaly_fields=()
    )

    written = write_reports(reports, tmp_path)

    assert len(written) == 3
    assert len({path.name for path in written}) == 3
    assert "infoFile.tsv" not in {path.name for path in written}
    assert (tmp_path / "infoFile.tsv").read_text(encoding="utf-8") == "MicrobeID\nm1\n"
    assert sorted(path.read_text(encoding="utf-8") for path in written) == [
        "m1\t1\n",
        "m1\t2\n",
        "m1\t3\n",
    ]
