"""
Job session: the main API for submitting and managing jobs.

A JobSession owns one root directory. Every job gets its own sub-directory,
which is the only record of the job: all queries re-derive state from the
files in it.

Usage:
    from job_engine import new_session_with_string_id

    session = new_session_with_string_id("/data/jobs", ["flows.csv", "costs.csv"])

    # Submit a job
    job_id = session.submit_get_id(OptimizationJob(), {"nb_flows": 5})

    # Check status
    status = session.get_status(job_id)
    print(status.state, status.time_begin)

    # Fetch results
    path = session.get_download_path_zipped_all(job_id)
"""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Set, TextIO, Tuple, TypeVar, Union

from core.constants import SENTINEL_FILES
from job_engine.errors import (
    AggregateJobError,
    DuplicateIdError,
    JobInitError,
    JobNotFoundError,
    ResultNotFoundError,
    StatusError,
)
from job_engine.executor import TERMINAL_STEPS, BackgroundExecutor
from job_engine.handlers.base import Job
from job_engine.ids import IdAllocator, IdT, SequentialIdAllocator, UuidIdAllocator, get_allocator
from job_engine.paths import JobPaths
from job_engine.status import JobState, JobStatus, read_status

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Marker polling interval for jobs not launched by this process
WAIT_POLL_INTERVAL = 0.1

# Allocation attempts of submit_get_id when another submitter takes the id first
SUBMIT_ID_ATTEMPTS = 3


class JobSession(Generic[IdT]):
    """
    Submits jobs and serves their status and results from a root directory.

    Submission returns as soon as the job directory exists and the job's
    init() succeeded; run() executes on a background thread. Any failure of
    the background execution is written to the job's error marker.

    Example:
        >>> session = JobSession("/data/jobs", ["flows.csv"])
        >>> job_id = session.submit_with_id(MyJob(), my_input, "42")
        >>> session.wait(job_id, timeout=60)
        >>> session.read_text(job_id, "flows.csv")
    """

    def __init__(
        self,
        root_directory: Union[str, Path],
        result_names: Iterable[str] = (),
        allocator: Optional[IdAllocator[IdT]] = None,
        max_concurrent_jobs: Optional[int] = None
    ):
        """
        Initialize JobSession.

        Args:
            root_directory: Directory holding one sub-directory per job
                (created if missing)
            result_names: Names of the result files every job writes
            allocator: Id allocator (SequentialIdAllocator by default)
            max_concurrent_jobs: Optional bound on concurrently running jobs

        Raises:
            ValueError: If a result name is reserved or not a plain file name
        """
        self.result_names: Tuple[str, ...] = tuple(sorted(set(result_names)))
        reserved = sorted(set(self.result_names) & SENTINEL_FILES)
        if reserved:
            raise ValueError(f"Result names collide with reserved sentinel files: {reserved}")
        for name in self.result_names:
            if not name or "\0" in name or Path(name).name != name or name in (".", ".."):
                raise ValueError(f"Result name must be a plain file name: {name!r}")
        if max_concurrent_jobs is not None and max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be a positive integer or None")

        self.root_directory = Path(root_directory)
        self.root_directory.mkdir(parents=True, exist_ok=True)

        self.paths: JobPaths[IdT] = JobPaths(self.root_directory, allocator or SequentialIdAllocator())
        self.executor = BackgroundExecutor(self.paths, self.result_names, max_concurrent_jobs)

        logger.info(
            "JobSession initialized at %s (results: %s, max concurrent: %s)",
            self.root_directory, list(self.result_names), max_concurrent_jobs or "unbounded"
        )

    # =========================================================================
    # Job Queries
    # =========================================================================

    def get_job_dir(self, job_id: IdT) -> Path:
        """
        Get the directory of a job.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        job_dir = self.paths.dir_of(job_id)
        if not job_dir.is_dir():
            raise JobNotFoundError(job_id)
        return job_dir

    def get_nb_jobs(self) -> int:
        return self.paths.count_jobs()

    def get_all_ids(self) -> Set[IdT]:
        return self.paths.list_ids()

    def does_job_exist(self, job_id: IdT) -> bool:
        return self.paths.exists(job_id)

    def get_status(self, job_id: IdT) -> JobStatus:
        """
        Get the status of a job from its sentinel files.

        Raises:
            StatusError: If the job never started or a marker is unreadable
        """
        return read_status(self.paths, job_id)

    def get_statuses(self) -> Dict[IdT, JobStatus]:
        """
        Get the status of every started job.

        Jobs without a readable begin marker (not started yet, or broken)
        are left out.
        """
        statuses = {}
        for job_id in self.get_all_ids():
            try:
                statuses[job_id] = self.get_status(job_id)
            except StatusError as e:
                logger.debug("Skipping job %s: %s", str(job_id)[:8], e)
        return statuses

    def get_ids_by_state(self, state: Union[JobState, str]) -> Set[IdT]:
        """
        Get the ids of the started jobs in the given state.

        Example:
            >>> session.get_ids_by_state("failed")
            {'3', '7'}
        """
        state = JobState(state)
        return {job_id for job_id, status in self.get_statuses().items() if status.state == state}

    def wait(self, job_id: IdT, timeout: Optional[float] = None) -> bool:
        """
        Wait for a job to finish.

        Jobs launched by this session are joined; other jobs are polled
        until their end marker appears, or an error that ends the job early.

        Args:
            job_id: Id of the job
            timeout: Maximum seconds to wait (None waits forever)

        Returns:
            True if the job finished, False on timeout

        Raises:
            JobNotFoundError: If the job does not exist
        """
        if self.executor.thread_of(job_id) is not None:
            return self.executor.wait(job_id, timeout)

        self.get_job_dir(job_id)
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if self._is_finished_on_disk(job_id):
                return True
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(WAIT_POLL_INTERVAL)

    def _is_finished_on_disk(self, job_id: IdT) -> bool:
        """
        True once the job's thread is done with its directory.

        That is the end marker, or an error block for a step after which
        the end marker is never written. Other errors (begin marker, run)
        leave the thread running.
        """
        if self.paths.end_marker_of(job_id).exists():
            return True
        err_path = self.paths.error_marker_of(job_id)
        if not err_path.exists():
            return False
        try:
            error = err_path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return False
        labels = tuple(f"[{step}]" for step in TERMINAL_STEPS)
        return any(line.startswith(labels) for line in error.splitlines())

    # =========================================================================
    # Downloads
    # =========================================================================

    def get_download_path(self, job_id: IdT, result_name: str) -> Path:
        """
        Get the path of a file inside a job directory.

        Raises:
            ResultNotFoundError: If the file does not exist
        """
        path = self.paths.result_file_of(job_id, result_name)
        if not path.is_file():
            raise ResultNotFoundError(job_id, result_name)
        return path

    def get_download_path_zipped(
        self,
        job_id: IdT,
        names: Iterable[str],
        zip_name: Optional[str] = None
    ) -> Path:
        """
        Archive files of a job into a ZIP inside the job directory.

        Fails on the first missing file, before anything is written.

        Args:
            job_id: Id of the job
            names: Names of the files to archive
            zip_name: Archive name (random if omitted)

        Returns:
            Path of the archive
        """
        files = [self.get_download_path(job_id, name) for name in names]
        return self.paths.zip(job_id, files, zip_name)

    def get_download_path_zipped_all(self, job_id: IdT, zip_name: Optional[str] = None) -> Path:
        """Archive every configured result file of a job."""
        return self.get_download_path_zipped(job_id, self.result_names, zip_name)

    def read_text(self, job_id: IdT, filename: str) -> str:
        path = self.get_download_path(job_id, filename)
        return path.read_text(encoding="utf-8")

    def parse_file(self, job_id: IdT, filename: str, parser: Callable[[TextIO], R]) -> R:
        """
        Parse a file of a job with the given parser.

        Args:
            job_id: Id of the job
            filename: Name of the file inside the job directory
            parser: Callable receiving the open text stream

        Returns:
            Whatever the parser returns
        """
        path = self.get_download_path(job_id, filename)
        with open(path, "r", encoding="utf-8", newline="") as f:
            return parser(f)

    # =========================================================================
    # Job Submission
    # =========================================================================

    def submit_get_id(self, job: Job, job_input: Any) -> IdT:
        """
        Submit a job under a newly allocated id.

        Allocation is retried if another submitter reserves the same id
        between allocation and reservation.

        Returns:
            The allocated id

        Raises:
            DuplicateIdError: If every allocation attempt lost the race
            JobInitError: If job.init() failed (nothing is left on disk)
        """
        for attempt in range(SUBMIT_ID_ATTEMPTS):
            job_id = self.paths.new_id()
            try:
                self.paths.reserve(job_id)
            except DuplicateIdError:
                if attempt == SUBMIT_ID_ATTEMPTS - 1:
                    raise
                logger.debug("Id %s taken concurrently, allocating another", str(job_id)[:8])
                continue
            return self._start_reserved(job, job_input, job_id)

    def submit_with_id(self, job: Job, job_input: Any, job_id: IdT) -> IdT:
        """
        Submit a job under the given id.

        The job directory is created atomically, then job.init() runs in the
        calling thread. If init fails the directory is removed again. On
        success the job is started in the background and the id is returned
        without waiting for it.

        Raises:
            DuplicateIdError: If a job with this id already exists
            JobInitError: If job.init() failed (nothing is left on disk)
        """
        self.paths.reserve(job_id)
        return self._start_reserved(job, job_input, job_id)

    def _start_reserved(self, job: Job, job_input: Any, job_id: IdT) -> IdT:
        try:
            job.init(job_id, job_input)
        except Exception as e:
            logger.error("Init of job %s failed: %s: %s", str(job_id)[:8], type(e).__name__, e)
            try:
                self.paths.remove_unchecked(job_id)
            except OSError as cleanup_error:
                logger.warning(
                    "Failed to remove directory of job %s: %s", str(job_id)[:8], cleanup_error
                )
            raise JobInitError(job_id, e) from e

        self.executor.launch(job, job_id)
        logger.info("Submitted job %s (%s)", str(job_id)[:8], type(job).__name__)
        return job_id

    # =========================================================================
    # Deletion
    # =========================================================================

    def delete(self, job_id: IdT) -> None:
        """
        Delete a completed job.

        Raises:
            JobNotFoundError: If the job does not exist
            JobNotCompletedError: If the job has not finished
        """
        self.paths.delete(job_id)

    def delete_all(self) -> None:
        """
        Delete every job, attempting all of them.

        Raises:
            AggregateJobError: With every per-job failure, if any
        """
        failures: List[Tuple[IdT, BaseException]] = []
        for job_id in sorted(self.get_all_ids(), key=str):
            try:
                self.delete(job_id)
            except Exception as e:  # noqa: BLE001
                logger.warning("Failed to delete job %s: %s", str(job_id)[:8], e)
                failures.append((job_id, e))

        if failures:
            raise AggregateJobError("Failed to delete all jobs", failures)


# =============================================================================
# Factories
# =============================================================================

def new_session_with_string_id(
    root_directory: Union[str, Path],
    result_names: Iterable[str] = (),
    max_concurrent_jobs: Optional[int] = None
) -> JobSession[str]:
    """Create a session with sequential string ids ("0", "1", ...)."""
    return JobSession(root_directory, result_names, SequentialIdAllocator(), max_concurrent_jobs)


def new_session_with_uuid(
    root_directory: Union[str, Path],
    result_names: Iterable[str] = (),
    max_concurrent_jobs: Optional[int] = None
) -> JobSession:
    """Create a session with random UUID ids."""
    return JobSession(root_directory, result_names, UuidIdAllocator(), max_concurrent_jobs)


def session_from_config(config: Dict[str, Any]) -> JobSession:
    """
    Create a session from a configuration dictionary.

    Args:
        config: Configuration with a 'session' section
            (see configs/defaults/session.yaml and core.config.load_session_config)

    Example:
        >>> from core.config import load_session_config
        >>> session = session_from_config(load_session_config())
    """
    section = config["session"]
    return JobSession(
        root_directory=section["root_directory"],
        result_names=section.get("result_names") or (),
        allocator=get_allocator(section.get("id_type", "string")),
        max_concurrent_jobs=section.get("max_concurrent_jobs"),
    )
