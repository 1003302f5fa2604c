"""Tests for edit metrics logging and stats."""

import json
import os

import pytest

from edit_session.editing.metrics import log_edit_metric, read_edit_stats


@pytest.fixture
def tmp_project(tmp_path):
    """Create a temp project root."""
    return str(tmp_path)


def _metrics_file(root: str) -> str:
    return os.path.join(root, ".edit_session", "edit_metrics.jsonl")


class TestLogEditMetric:
    def test_creates_file_and_writes_entry(self, tmp_project):
        log_edit_metric(
            {"files": ["src/auth.py"], "added_lines": 3, "removed_lines": 1},
            project_root=tmp_project,
        )

        path = _metrics_file(tmp_project)
        assert os.path.isfile(path)

        with open(path) as f:
            lines = f.readlines()
        assert len(lines) == 1

        entry = json.loads(lines[0])
        assert entry["files"] == ["src/auth.py"]
        assert entry["added_lines"] == 3
        assert "timestamp" in entry

    def test_appends_multiple_entries(self, tmp_project):
        log_edit_metric({"files": ["a.py"]}, project_root=tmp_project)
        log_edit_metric({"files": ["b.py"]}, project_root=tmp_project)
        log_edit_metric({"files": ["c.py"]}, project_root=tmp_project)

        with open(_metrics_file(tmp_project)) as f:
            lines = f.readlines()
        assert len(lines) == 3

    def test_custom_metrics_dir(self, tmp_project):
        log_edit_metric({"files": []}, project_root=tmp_project, metrics_dir="stats")
        assert os.path.isfile(os.path.join(tmp_project, "stats", "edit_metrics.jsonl"))


class TestReadEditStats:
    def test_empty_stats(self, tmp_project):
        stats = read_edit_stats(project_root=tmp_project)

        assert stats["total_sessions"] == 0
        assert stats["avg_added_lines"] == 0.0
        assert stats["parse_error_rate"] == 0.0
        assert stats["source_formats"] == {}

    def test_stats_from_entries(self, tmp_project):
        entries = [
            {
                "files": ["a.py", "b.py"],
                "added_lines": 10,
                "removed_lines": 4,
                "source_formats": ["structured", "structured"],
                "parse_errors": 0,
            },
            {
                "files": ["c.py"],
                "added_lines": 2,
                "removed_lines": 2,
                "source_formats": ["fallback"],
                "parse_errors": 1,
            },
            {
                "files": [],
                "added_lines": 0,
                "removed_lines": 0,
                "source_formats": [],
                "parse_errors": 0,
            },
        ]
        for e in entries:
            log_edit_metric(e, project_root=tmp_project)

        stats = read_edit_stats(last_n=50, project_root=tmp_project)

        assert stats["total_sessions"] == 3
        assert stats["total_files"] == 3
        assert stats["avg_added_lines"] == 4.0
        assert stats["avg_removed_lines"] == 2.0
        # 1 session with parse errors / 3 total ≈ 33.3%
        assert 33 <= stats["parse_error_rate"] <= 34
        # 2 structured / 3 files ≈ 66.7%
        assert 66 <= stats["source_formats"]["structured"] <= 67
        assert 33 <= stats["source_formats"]["fallback"] <= 34

    def test_last_n_limits(self, tmp_project):
        for i in range(10):
            log_edit_metric(
                {"files": [f"f{i}.py"], "added_lines": 1, "removed_lines": 0,
                 "source_formats": ["fallback"], "parse_errors": 0},
                project_root=tmp_project,
            )

        stats = read_edit_stats(last_n=5, project_root=tmp_project)
        assert stats["total_sessions"] == 5

    @pytest.mark.parametrize("last_n", [0, -3])
    def test_non_positive_last_n_includes_nothing(self, tmp_project, last_n):
        log_edit_metric({"files": ["a.py"], "added_lines": 4}, project_root=tmp_project)
        stats = read_edit_stats(last_n=last_n, project_root=tmp_project)
        assert stats["total_sessions"] == 0
        assert stats["avg_added_lines"] == 0.0

    def test_skips_corrupt_lines(self, tmp_project):
        log_edit_metric({"files": ["a.py"]}, project_root=tmp_project)
        with open(_metrics_file(tmp_project), "a") as f:
            f.write("{not json\n")

        stats = read_edit_stats(project_root=tmp_project)
        assert stats["total_sessions"] == 1
