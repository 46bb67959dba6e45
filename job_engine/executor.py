"""
Background execution of submitted jobs.

Each submitted job runs on its own thread:

    1. open the result writers       (failure: record error, stop)
    2. write the begin marker        (failure: record error, continue)
    3. job.run(id, writers)          (failure: record error, continue)
    4. close the result writers      (always)
    5. write the end marker          (failure: record error)

Failures are appended to the job's error marker and logged; they are never
raised to the submitter. There is no pool and no queue: every job starts
immediately unless max_concurrent_jobs bounds the number of running bodies.
"""

import logging
import threading
import traceback
from typing import Dict, Iterable, Optional

from job_engine.handlers.base import Job
from job_engine.ids import IdT
from job_engine.paths import JobPaths
from job_engine.writers import ResultWriters

logger = logging.getLogger(__name__)

# Step labels written as "[<step>]" at the start of each error block
STEP_OPEN_WRITERS = "open result writers"
STEP_WRITE_BEGIN = "write begin marker"
STEP_RUN = "run"
STEP_CLOSE_WRITERS = "close result writers"
STEP_WRITE_END = "write end marker"

# Failed steps after which no end marker will ever be written
TERMINAL_STEPS = (STEP_OPEN_WRITERS, STEP_WRITE_END)


class BackgroundExecutor:
    """
    Runs jobs on dedicated threads and records their lifecycle on disk.

    Example:
        >>> executor = BackgroundExecutor(paths, ["flows.csv"])
        >>> executor.launch(job, "0")
        >>> executor.wait("0", timeout=30)
    """

    def __init__(
        self,
        paths: JobPaths,
        result_names: Iterable[str],
        max_concurrent_jobs: Optional[int] = None
    ):
        """
        Args:
            paths: Path scheme of the session
            result_names: Names of the result writers given to every job
            max_concurrent_jobs: Optional bound on concurrently running bodies
        """
        self.paths = paths
        self.result_names = frozenset(result_names)
        self.max_concurrent_jobs = max_concurrent_jobs
        self._slots = (
            threading.BoundedSemaphore(max_concurrent_jobs) if max_concurrent_jobs else None
        )
        self._threads: Dict[IdT, threading.Thread] = {}
        self._lock = threading.Lock()

    def launch(self, job: Job, job_id: IdT) -> threading.Thread:
        """Start the execution of a job on a new thread and return the thread."""
        thread = threading.Thread(
            target=self._run_with_slot,
            args=(job, job_id),
            name=f"job-{str(job_id)[:8]}",
            daemon=False  # Not daemon - interpreter exit waits for running jobs
        )
        with self._lock:
            self._threads = {k: t for k, t in self._threads.items() if t.is_alive()}
            self._threads[job_id] = thread
        thread.start()
        logger.info("Launched job %s on thread %s", str(job_id)[:8], thread.name)
        return thread

    def thread_of(self, job_id: IdT) -> Optional[threading.Thread]:
        with self._lock:
            return self._threads.get(job_id)

    def wait(self, job_id: IdT, timeout: Optional[float] = None) -> bool:
        """
        Wait for the thread of a job launched by this executor.

        Returns:
            True if the thread finished (or is unknown), False on timeout
        """
        thread = self.thread_of(job_id)
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for t in self._threads.values() if t.is_alive())

    def _run_with_slot(self, job: Job, job_id: IdT) -> None:
        if self._slots is None:
            self.execute(job, job_id)
            return
        with self._slots:
            self.execute(job, job_id)

    # =========================================================================
    # Execution Steps
    # =========================================================================

    def execute(self, job: Job, job_id: IdT) -> None:
        """Run all execution steps of a job synchronously."""
        short_id = str(job_id)[:8]

        # 1. Result writers
        try:
            writers = ResultWriters.open(self.paths.dir_of(job_id), self.result_names)
        except Exception as e:  # noqa: BLE001
            self._record(job_id, STEP_OPEN_WRITERS, e)
            return

        # 2. Begin marker
        try:
            self.paths.write_begin(job_id)
        except Exception as e:  # noqa: BLE001
            self._record(job_id, STEP_WRITE_BEGIN, e)

        logger.info("Job %s started", short_id)

        # 3. Job body, 4. release writers
        try:
            job.run(job_id, writers.writers)
        except Exception as e:  # noqa: BLE001
            self._record(job_id, STEP_RUN, e)
        finally:
            try:
                writers.close()
            except Exception as e:  # noqa: BLE001
                self._record(job_id, STEP_CLOSE_WRITERS, e)

        # 5. End marker
        try:
            self.paths.write_end(job_id)
        except Exception as e:  # noqa: BLE001
            self._record(job_id, STEP_WRITE_END, e)

        logger.info("Job %s finished", short_id)

    def _record(self, job_id: IdT, step: str, error: Exception) -> None:
        """Append a failure to the error marker of the job and log it."""
        error_msg = f"{type(error).__name__}: {error}"
        logger.error("Job %s failed to %s: %s", str(job_id)[:8], step, error_msg)
        logger.debug("Traceback:\n%s", traceback.format_exc())

        text = f"[{step}] {error_msg}\n{traceback.format_exc()}"
        try:
            self.paths.append_error(job_id, text)
        except OSError as e:
            logger.error("Cannot write error marker of job %s: %s", str(job_id)[:8], e)
