"""
Integration tests for the job lifecycle through JobSession.

Tests:
- Submission (allocated and explicit ids, duplicates, id races, init rollback)
- Status derivation while running, after success and after failure
- Downloads and archives
- Deletion guard and bulk deletion
- Bounded concurrency
"""

import builtins
import csv
import threading
import uuid
import zipfile
from unittest.mock import patch

import pytest

from core.constants import BEGIN_MARKER, END_MARKER, ERROR_MARKER
from job_engine.errors import (
    AggregateJobError,
    DuplicateIdError,
    JobInitError,
    JobNotCompletedError,
    JobNotFoundError,
    ResultNotFoundError,
    StatusError,
)
from job_engine.session import (
    SUBMIT_ID_ATTEMPTS,
    JobSession,
    new_session_with_string_id,
    new_session_with_uuid,
    session_from_config,
)
from job_engine.status import JobState
from tests.helpers import RESULT_NAMES, BlockingJob, EchoJob, FailingInitJob, FailingRunJob

TIMEOUT = 10


def submit_and_wait(session, job, job_input="hello", job_id=None):
    if job_id is None:
        job_id = session.submit_get_id(job, job_input)
    else:
        session.submit_with_id(job, job_input, job_id)
    assert session.wait(job_id, TIMEOUT)
    return job_id


class TestConstruction:

    def test_root_created(self, tmp_path):
        root = tmp_path / "a" / "b"
        JobSession(root)
        assert root.is_dir()

    def test_sentinel_result_name_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="reserved"):
            JobSession(tmp_path, ["flows.csv", END_MARKER])

    def test_result_name_with_path_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            JobSession(tmp_path, ["sub/flows.csv"])

    def test_result_name_with_nul_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="plain file name"):
            new_session_with_string_id(tmp_path, ["a.txt", "b\0.txt"])

    def test_session_from_config(self, tmp_path):
        config = {"session": {
            "root_directory": str(tmp_path / "jobs"),
            "result_names": ["x.txt"],
            "id_type": "uuid",
            "max_concurrent_jobs": 2,
        }}
        session = session_from_config(config)
        assert session.result_names == ("x.txt",)
        assert session.executor.max_concurrent_jobs == 2
        job_id = submit_and_wait(session, EchoJob())
        assert isinstance(job_id, uuid.UUID)


class TestSubmission:

    def test_ids_are_unique(self, session):
        ids = [submit_and_wait(session, EchoJob(), f"job {i}") for i in range(5)]
        assert ids == ["0", "1", "2", "3", "4"]
        assert session.get_nb_jobs() == 5
        assert session.get_all_ids() == set(ids)

    def test_uuid_ids_are_unique(self, root):
        session = new_session_with_uuid(root, RESULT_NAMES)
        ids = {submit_and_wait(session, EchoJob()) for _ in range(5)}
        assert len(ids) == 5
        assert session.get_all_ids() == ids

    def test_run_writes_results(self, session):
        job = EchoJob()
        job_id = submit_and_wait(session, job, "hello")
        assert job.run_calls == 1
        assert session.read_text(job_id, "a.txt") == "a.txt:hello\n"
        assert session.read_text(job_id, "b.txt") == "b.txt:hello\n"

    def test_duplicate_id_leaves_first_job_untouched(self, session):
        submit_and_wait(session, EchoJob(), "first", job_id="x")
        job_dir = session.get_job_dir("x")
        before = {p.name: p.read_bytes() for p in job_dir.iterdir()}

        second = EchoJob()
        with pytest.raises(DuplicateIdError):
            session.submit_with_id(second, "second", "x")

        after = {p.name: p.read_bytes() for p in job_dir.iterdir()}
        assert after == before
        assert second.text is None
        assert second.run_calls == 0

    def test_concurrent_submissions_with_same_id(self, session):
        results = []
        lock = threading.Lock()

        def submit():
            job = EchoJob()
            try:
                session.submit_with_id(job, "racing", "same")
                outcome = "ok"
            except DuplicateIdError:
                outcome = "duplicate"
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=submit) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("duplicate") == 7
        assert session.wait("same", TIMEOUT)

    def test_allocated_id_taken_concurrently_is_retried(self, session, root):
        # Another submitter reserved "0" between allocation and reservation
        (root / "0").mkdir()
        with patch.object(session.paths, "new_id", side_effect=["0", "1"]):
            job_id = session.submit_get_id(EchoJob(), "x")
        assert job_id == "1"
        assert session.wait(job_id, TIMEOUT)
        assert not (root / "0" / BEGIN_MARKER).exists()

    def test_allocation_gives_up_after_repeated_collisions(self, session, root):
        (root / "0").mkdir()
        with patch.object(session.paths, "new_id", return_value="0") as new_id:
            with pytest.raises(DuplicateIdError):
                session.submit_get_id(EchoJob(), "x")
        assert new_id.call_count == SUBMIT_ID_ATTEMPTS

    def test_concurrent_allocations_all_succeed(self, session):
        ids = []
        lock = threading.Lock()

        def submit():
            job_id = session.submit_get_id(EchoJob(), "racing")
            with lock:
                ids.append(job_id)

        threads = [threading.Thread(target=submit) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(ids)) == 3
        for job_id in ids:
            assert session.wait(job_id, TIMEOUT)

    def test_init_failure_rolls_back(self, session):
        with pytest.raises(JobInitError) as exc_info:
            session.submit_with_id(FailingInitJob(), "input", "7")

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert not session.does_job_exist("7")
        assert "7" not in session.get_all_ids()
        assert session.get_nb_jobs() == 0

    def test_init_failure_frees_allocated_id(self, session):
        with pytest.raises(JobInitError):
            session.submit_get_id(FailingInitJob(), None)
        assert submit_and_wait(session, EchoJob()) == "0"


class TestStatus:

    def test_running_then_completed(self, session):
        job = BlockingJob()
        job_id = session.submit_get_id(job, "x")
        assert job.started.wait(TIMEOUT)

        status = session.get_status(job_id)
        assert status.is_running
        assert session.get_ids_by_state(JobState.RUNNING) == {job_id}

        job.release()
        assert session.wait(job_id, TIMEOUT)

        status = session.get_status(job_id)
        assert status.state == JobState.COMPLETED
        assert status.time_end >= status.time_begin
        assert session.get_ids_by_state("completed") == {job_id}

    def test_run_failure_recorded(self, session):
        job_id = submit_and_wait(session, FailingRunJob())

        status = session.get_status(job_id)
        assert status.is_error
        assert status.is_completed
        assert status.state == JobState.FAILED
        assert "JobFailedError: something went wrong." in status.error
        assert session.get_ids_by_state("failed") == {job_id}
        # Writers were still released and the end marker written
        assert session.get_download_path(job_id, "a.txt").is_file()

    def test_directory_without_begin_marker(self, session):
        (session.root_directory / "manual").mkdir()
        with pytest.raises(StatusError):
            session.get_status("manual")
        # Unstarted jobs are left out of listings by state
        assert session.get_statuses() == {}

    def test_statuses(self, session):
        ok = submit_and_wait(session, EchoJob())
        failed = submit_and_wait(session, FailingRunJob())
        statuses = session.get_statuses()
        assert statuses[ok].state == JobState.COMPLETED
        assert statuses[failed].state == JobState.FAILED

    def test_statuses_skip_undecodable_marker(self, session):
        ok = submit_and_wait(session, EchoJob())
        broken = session.root_directory / "broken"
        broken.mkdir()
        (broken / BEGIN_MARKER).write_bytes(b"\xff\xfe2024")

        with pytest.raises(StatusError):
            session.get_status("broken")
        assert set(session.get_statuses()) == {ok}
        assert session.get_ids_by_state("completed") == {ok}

    def test_unknown_state(self, session):
        with pytest.raises(ValueError):
            session.get_ids_by_state("cancelled")


class TestWriterFailure:

    def test_partial_writer_failure_skips_body(self, session):
        real_open = builtins.open
        opened = []

        def flaky_open(path, *args, **kwargs):
            if str(path).endswith("b.txt"):
                raise PermissionError("denied")
            handle = real_open(path, *args, **kwargs)
            opened.append(handle)
            return handle

        job = EchoJob()
        with patch("job_engine.writers.open", side_effect=flaky_open, create=True):
            job_id = session.submit_get_id(job, "x")
            assert session.wait(job_id, TIMEOUT)

        assert job.run_calls == 0
        assert opened and all(handle.closed for handle in opened)

        job_dir = session.get_job_dir(job_id)
        assert (job_dir / ERROR_MARKER).is_file()
        assert not (job_dir / BEGIN_MARKER).exists()
        assert not (job_dir / END_MARKER).exists()
        assert "WriterOpenError" in (job_dir / ERROR_MARKER).read_text(encoding="utf-8")
        with pytest.raises(StatusError):
            session.get_status(job_id)


class TestDownloads:

    def test_missing_result(self, session):
        job_id = submit_and_wait(session, EchoJob())
        with pytest.raises(ResultNotFoundError):
            session.get_download_path(job_id, "missing.csv")

    def test_missing_job(self, session):
        with pytest.raises(JobNotFoundError):
            session.get_job_dir("42")

    def test_parse_file(self, session):
        job_id = submit_and_wait(session, EchoJob(), "1,2")
        rows = session.parse_file(job_id, "a.txt", lambda f: list(csv.reader(f)))
        assert rows == [["a.txt:1", "2"]]

    def test_zip_all_round_trip(self, session):
        job_id = submit_and_wait(session, EchoJob(), "payload")
        originals = {
            name: session.get_download_path(job_id, name).read_bytes() for name in RESULT_NAMES
        }

        zip_path = session.get_download_path_zipped_all(job_id, "all")

        assert zip_path == session.get_job_dir(job_id) / "all.zip"
        with zipfile.ZipFile(zip_path) as zipf:
            extracted = {name: zipf.read(name) for name in zipf.namelist()}
        assert extracted == originals

    def test_zip_random_name(self, session):
        job_id = submit_and_wait(session, EchoJob())
        first = session.get_download_path_zipped(job_id, ["a.txt"])
        second = session.get_download_path_zipped(job_id, ["a.txt"])
        assert first != second
        assert first.suffix == ".zip"

    def test_zip_fails_fast_on_missing_file(self, session):
        job_id = submit_and_wait(session, EchoJob())
        with pytest.raises(ResultNotFoundError):
            session.get_download_path_zipped(job_id, ["a.txt", "nope.txt"], "partial.zip")
        assert not (session.get_job_dir(job_id) / "partial.zip").exists()


class TestDeletion:

    def test_delete_guard(self, session):
        job = BlockingJob()
        job_id = session.submit_get_id(job, "x")
        assert job.started.wait(TIMEOUT)

        with pytest.raises(JobNotCompletedError):
            session.delete(job_id)
        assert session.does_job_exist(job_id)

        job.release()
        assert session.wait(job_id, TIMEOUT)
        session.delete(job_id)
        assert not session.does_job_exist(job_id)

    def test_delete_unknown(self, session):
        with pytest.raises(JobNotFoundError):
            session.delete("42")

    def test_delete_all_aggregates_failures(self, session):
        done = [submit_and_wait(session, EchoJob()) for _ in range(2)]
        running = BlockingJob()
        running_id = session.submit_get_id(running, "x")
        assert running.started.wait(TIMEOUT)

        try:
            with pytest.raises(AggregateJobError) as exc_info:
                session.delete_all()
        finally:
            running.release()

        failures = exc_info.value.failures
        assert [job_id for job_id, _ in failures] == [running_id]
        assert isinstance(failures[0][1], JobNotCompletedError)
        # Successful deletions are not rolled back
        assert not any(session.does_job_exist(job_id) for job_id in done)
        assert session.wait(running_id, TIMEOUT)
        session.delete_all()
        assert session.get_nb_jobs() == 0


class TestWait:

    def test_wait_unknown_job(self, session):
        with pytest.raises(JobNotFoundError):
            session.wait("42", 0.1)

    def test_wait_polls_markers_of_foreign_jobs(self, session, root):
        job_id = submit_and_wait(session, EchoJob())
        # A second session over the same root did not launch the job
        other = new_session_with_string_id(root, RESULT_NAMES)
        assert other.wait(job_id, 1)

    def test_wait_times_out(self, session, root):
        (root / "manual").mkdir()
        assert not session.wait("manual", 0.2)

    def test_wait_ignores_begin_marker_error_until_end(self, session, root):
        job_dir = root / "manual"
        job_dir.mkdir()
        (job_dir / ERROR_MARKER).write_text(
            "[write begin marker] PermissionError: denied\n", encoding="utf-8"
        )
        # The body may still be running, so the job is not finished yet
        assert not session.wait("manual", 0.3)

        (job_dir / END_MARKER).write_text("2024-01-01 12:00:10", encoding="utf-8")
        assert session.wait("manual", 1)

    def test_wait_returns_on_writer_open_error(self, session, root):
        job_dir = root / "manual"
        job_dir.mkdir()
        (job_dir / ERROR_MARKER).write_text(
            "[open result writers] WriterOpenError: denied\n", encoding="utf-8"
        )
        assert session.wait("manual", 1)

    def test_wait_times_out_on_running_job(self, session):
        job = BlockingJob()
        job_id = session.submit_get_id(job, "x")
        try:
            assert not session.wait(job_id, 0.1)
        finally:
            job.release()
        assert session.wait(job_id, TIMEOUT)


class TestConcurrencyLimit:

    def test_second_job_waits_for_slot(self, root):
        session = new_session_with_string_id(root, RESULT_NAMES, max_concurrent_jobs=1)
        first, second = BlockingJob(), BlockingJob()
        first_id = session.submit_get_id(first, "1")
        second_id = session.submit_get_id(second, "2")

        try:
            assert first.started.wait(TIMEOUT)
            assert not second.started.wait(0.3)
            # Submission returned, the directory exists, but the job has not begun
            assert session.does_job_exist(second_id)
            with pytest.raises(StatusError):
                session.get_status(second_id)

            first.release()
            assert second.started.wait(TIMEOUT)
        finally:
            first.release()
            second.release()

        assert session.wait(first_id, TIMEOUT)
        assert session.wait(second_id, TIMEOUT)
        assert session.get_ids_by_state("completed") == {first_id, second_id}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
