"""
Base class for jobs.

Each job type implements Job and provides the init() and run() methods.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, TextIO, TypeVar

from job_engine.ids import IdT

InputT = TypeVar("InputT")


class JobFailedError(Exception):
    """Raised by a job body to report a failure with a readable message."""
    pass


class Job(ABC, Generic[IdT, InputT]):
    """
    Abstract base class for jobs.

    A job is submitted through JobSession. init() runs synchronously during
    submission; run() runs later on a background thread. Either step reports
    failure by raising; the session records run() failures in the job's error
    marker.

    Example:
        class EchoJob(Job):
            def init(self, job_id, job_input):
                if not job_input:
                    raise ValueError("input is wrong or missing.")
                self.text = job_input

            def run(self, job_id, result_writers):
                result_writers["echo.txt"].write(self.text)
    """

    @abstractmethod
    def init(self, job_id: IdT, job_input: InputT) -> None:
        """
        Prepare the job before it is started.

        Runs in the caller's thread. If it raises, the job directory is
        removed and the submission fails.

        Args:
            job_id: Id of the job being submitted
            job_input: Input of the job
        """

    @abstractmethod
    def run(self, job_id: IdT, result_writers: Dict[str, TextIO]) -> Any:
        """
        Execute the job.

        Runs on a background thread. The writers are opened before the call
        and closed by the session after it returns.

        Args:
            job_id: Id of the job
            result_writers: Result name -> open text stream

        Raises:
            JobFailedError: To report a failure with a readable message
            Exception: Any other error is recorded the same way
        """
