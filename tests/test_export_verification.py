"""Test path list export and source availability verification."""

import csv
import json

import pytest

from unlazer.core.export import export_path_list
from unlazer.core.paths import PathPair, ResolutionResult, SkippedRow, resolve_paths
from unlazer.core.verification import verify_source_availability


@pytest.fixture
def resolution(db_conn, mock_lazer_structure):
    return resolve_paths(db_conn, mock_lazer_structure["files"], mock_lazer_structure["songs"])


class TestExportPathList:
    """Test dry-run exports."""

    def test_csv_export(self, resolution, temp_dir):
        output = export_path_list(resolution, temp_dir / "exports" / "paths.csv")

        with open(output, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))

        assert rows[0] == ["source", "destination"]
        assert len(rows) == len(resolution) + 1
        assert rows[1] == [str(resolution.pairs[0].source), str(resolution.pairs[0].destination)]

    def test_json_export_includes_skipped(self, temp_dir):
        result = ResolutionResult(
            pairs=[PathPair(temp_dir / "a" / "ab" / "abc", temp_dir / "S" / "1 A - B" / "x.osu")],
            skipped=[SkippedRow(2, "bad.osu", "z", "hash too short")],
        )

        output = export_path_list(result, temp_dir / "paths.json")
        data = json.loads(output.read_text(encoding="utf-8"))

        assert data["pairs"] == [
            {"source": str(result.pairs[0].source), "destination": str(result.pairs[0].destination)}
        ]
        assert data["skipped"] == [
            {"set_id": 2, "filename": "bad.osu", "hash": "z", "reason": "hash too short"}
        ]
        assert "generated" in data

    def test_unicode_names_survive(self, temp_dir):
        result = ResolutionResult(pairs=[PathPair(temp_dir / "s", temp_dir / "秒針を噛む" / "bg.jpg")])
        output = export_path_list(result, temp_dir / "paths.json")
        assert "秒針を噛む" in output.read_text(encoding="utf-8")


class TestVerifySourceAvailability:
    """Test content store availability checks."""

    def test_all_present(self, resolution, mock_files):
        result = verify_source_availability(resolution.pairs, sample_size=0)

        assert result["total_files"] == 6
        assert result["sample_size"] == 6
        assert result["files_found"] == 6
        assert result["missing_count"] == 0
        assert result["availability_rate"] == 100.0
        assert result["available_size"] > 0

    def test_some_missing(self, resolution, mock_files):
        mock_files[resolution.pairs[0].source.name].unlink()

        result = verify_source_availability(resolution.pairs, sample_size=0)

        assert result["missing_count"] == 1
        assert result["missing"] == [resolution.pairs[0].source]
        assert result["availability_rate"] == pytest.approx(500 / 6)

    def test_sample_size(self, resolution, mock_files):
        result = verify_source_availability(resolution.pairs, sample_size=2)
        assert result["sample_size"] == 2
        assert result["total_files"] == 6

    def test_empty_list(self):
        result = verify_source_availability([], sample_size=100)
        assert result["total_files"] == 0
        assert result["availability_rate"] == 0.0

    def test_does_not_create_destinations(self, resolution, mock_files, mock_lazer_structure):
        verify_source_availability(resolution.pairs, sample_size=0)
        assert not mock_lazer_structure["songs"].exists()
