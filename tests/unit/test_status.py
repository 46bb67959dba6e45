"""
Unit tests for status derivation from sentinel files.
"""

import warnings
from datetime import datetime

import pytest

from job_engine.errors import StatusError
from job_engine.ids import SequentialIdAllocator
from job_engine.paths import JobPaths
from job_engine.status import JobState, JobStatus, read_run_status, read_status

BEGIN = datetime(2024, 1, 1, 12, 0, 0)
END = datetime(2024, 1, 1, 12, 0, 10)


@pytest.fixture
def paths(tmp_path):
    paths = JobPaths(tmp_path, SequentialIdAllocator())
    paths.reserve("0")
    return paths


class TestReadStatus:

    def test_begin_only_is_running(self, paths):
        paths.write_begin("0", BEGIN)
        status = read_status(paths, "0")
        assert status.is_running
        assert not status.is_completed
        assert not status.is_error
        assert status.state == JobState.RUNNING
        assert status.time_begin == BEGIN

    def test_begin_and_end_is_completed(self, paths):
        paths.write_begin("0", BEGIN)
        paths.write_end("0", END)
        status = read_status(paths, "0")
        assert status.state == JobState.COMPLETED
        assert status.time_end == END
        assert status.duration_seconds == 10

    def test_error_without_end_is_failed(self, paths):
        paths.write_begin("0", BEGIN)
        paths.append_error("0", "[run] JobFailedError: boom")
        status = read_status(paths, "0")
        assert status.is_error
        assert status.state == JobState.FAILED
        assert "boom" in status.error

    def test_error_with_end_is_failed(self, paths):
        paths.write_begin("0", BEGIN)
        paths.append_error("0", "boom")
        paths.write_end("0", END)
        status = read_status(paths, "0")
        assert status.is_completed
        assert status.is_error
        assert not status.is_running
        assert status.state == JobState.FAILED

    def test_missing_begin_fails(self, paths):
        with pytest.raises(StatusError):
            read_status(paths, "0")

    def test_unparsable_end_fails(self, paths):
        paths.write_begin("0", BEGIN)
        paths.end_marker_of("0").write_text("not a time", encoding="utf-8")
        with pytest.raises(StatusError):
            read_status(paths, "0")

    def test_undecodable_begin_fails(self, paths):
        paths.begin_marker_of("0").write_bytes(b"\xff\xfe2024")
        with pytest.raises(StatusError) as exc_info:
            read_status(paths, "0")
        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)

    def test_undecodable_error_fails(self, paths):
        paths.write_begin("0", BEGIN)
        paths.error_marker_of("0").write_bytes(b"\xff\xfe boom")
        with pytest.raises(StatusError):
            read_status(paths, "0")


class TestJobStatus:

    def test_to_dict(self):
        status = JobStatus(job_id="3", time_begin=BEGIN, time_end=END)
        assert status.to_dict() == {
            "job_id": "3",
            "state": "completed",
            "time_begin": "2024-01-01 12:00:00",
            "time_end": "2024-01-01 12:00:10",
            "error": None,
            "is_running": False,
            "is_completed": True,
            "is_error": False,
        }

    def test_repr(self):
        status = JobStatus(job_id="3", time_begin=BEGIN)
        assert repr(status) == "JobStatus(id=3, state=running)"


def test_read_run_status_is_deprecated(paths):
    paths.write_begin("0", BEGIN)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        status = read_run_status(paths, "0")
    assert status.state == JobState.RUNNING
    assert any(issubclass(w.category, DeprecationWarning) for w in caught)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
