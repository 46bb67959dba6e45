"""
Unit tests for JobPaths.

Tests:
- Path arithmetic for job directories and sentinel files
- Atomic reservation of job directories
- Marker writing and time parsing
- Deletion guard
"""

from datetime import datetime
from unittest.mock import patch

import pytest

from core.constants import BEGIN_MARKER, END_MARKER, ERROR_MARKER
from job_engine.errors import (
    AggregateJobError,
    DuplicateIdError,
    JobEngineError,
    JobNotCompletedError,
    JobNotFoundError,
    StatusError,
)
from job_engine.ids import SequentialIdAllocator
from job_engine.paths import JobPaths, format_time, parse_time


@pytest.fixture
def paths(tmp_path):
    return JobPaths(tmp_path / "jobs", SequentialIdAllocator())


class TestPathArithmetic:

    def test_sentinel_paths(self, paths):
        job_dir = paths.dir_of("7")
        assert job_dir == paths.root / "7"
        assert paths.begin_marker_of("7") == job_dir / BEGIN_MARKER
        assert paths.end_marker_of("7") == job_dir / END_MARKER
        assert paths.error_marker_of("7") == job_dir / ERROR_MARKER

    def test_result_file(self, paths):
        assert paths.result_file_of("7", "flows.csv") == paths.root / "7" / "flows.csv"

    @pytest.mark.parametrize("name", ["", "..", "../escape.txt", "sub/file.txt"])
    def test_result_file_must_be_plain_name(self, paths, name):
        with pytest.raises(ValueError):
            paths.result_file_of("7", name)


class TestDirectories:

    def test_reserve_creates_root_and_directory(self, paths):
        job_dir = paths.reserve("0")
        assert job_dir.is_dir()
        assert paths.exists("0")

    def test_reserve_twice_fails(self, paths):
        paths.reserve("0")
        with pytest.raises(DuplicateIdError):
            paths.reserve("0")

    def test_create_if_missing_is_idempotent(self, paths):
        paths.create_if_missing("0")
        paths.create_if_missing("0")
        assert paths.exists("0")

    def test_listing(self, paths):
        for job_id in ("0", "1", "5"):
            paths.reserve(job_id)
        assert paths.count_jobs() == 3
        assert paths.list_ids() == {"0", "1", "5"}
        assert paths.new_id() == "2"

    def test_listing_missing_root(self, paths):
        with pytest.raises(JobEngineError):
            paths.count_jobs()


class TestMarkers:

    def test_time_format(self):
        assert format_time(datetime(2024, 3, 5, 7, 8, 9)) == "2024-03-05 07:08:09"

    def test_write_and_parse_begin(self, paths):
        paths.reserve("0")
        when = datetime(2024, 1, 2, 3, 4, 5)
        paths.write_begin("0", when)
        assert paths.begin_marker_of("0").read_text(encoding="utf-8") == "2024-01-02 03:04:05"
        assert parse_time(paths.begin_marker_of("0")) == when

    def test_parse_missing_marker(self, paths):
        paths.reserve("0")
        with pytest.raises(StatusError, match="Cannot find time-file"):
            parse_time(paths.end_marker_of("0"))

    def test_parse_garbage_marker(self, paths):
        paths.reserve("0")
        paths.end_marker_of("0").write_text("yesterday", encoding="utf-8")
        with pytest.raises(StatusError, match="Failed to parse"):
            parse_time(paths.end_marker_of("0"))

    def test_append_error_accumulates(self, paths):
        paths.reserve("0")
        paths.append_error("0", "first")
        paths.append_error("0", "second\n")
        assert paths.error_marker_of("0").read_text(encoding="utf-8") == "first\nsecond\n"


class TestDelete:

    def test_delete_unknown_job(self, paths):
        paths.root.mkdir(parents=True)
        with pytest.raises(JobNotFoundError):
            paths.delete("9")

    def test_delete_requires_end_marker(self, paths):
        paths.reserve("0")
        paths.write_begin("0")
        with pytest.raises(JobNotCompletedError):
            paths.delete("0")
        assert paths.exists("0")

    def test_delete_removes_subdirectories(self, paths):
        job_dir = paths.reserve("0")
        (job_dir / "nested" / "deeper").mkdir(parents=True)
        (job_dir / "nested" / "deeper" / "x.txt").write_text("x")
        paths.write_begin("0")
        paths.write_end("0")

        paths.delete("0")

        assert not paths.exists("0")

    def test_delete_aggregates_failures(self, paths):
        job_dir = paths.reserve("0")
        (job_dir / "sub1").mkdir()
        (job_dir / "sub2").mkdir()
        paths.write_end("0")

        with patch("job_engine.paths.shutil.rmtree", side_effect=PermissionError("denied")):
            with pytest.raises(AggregateJobError) as exc_info:
                paths.delete("0")

        # Both sub-directories and the job directory itself
        assert [name for name, _ in exc_info.value.failures] == ["sub1", "sub2", "0"]


class TestZip:

    def test_zip_unknown_job(self, paths, tmp_path):
        paths.root.mkdir(parents=True)
        with pytest.raises(JobNotFoundError):
            paths.zip("3", [tmp_path / "a.txt"])

    def test_zip_inside_job_directory(self, paths):
        job_dir = paths.reserve("0")
        (job_dir / "a.txt").write_text("A")
        zip_path = paths.zip("0", [job_dir / "a.txt"], "out")
        assert zip_path == job_dir / "out.zip"
        assert zip_path.is_file()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
