"""
Exception hierarchy for the job engine.

Every synchronous failure of a session operation is raised as a subclass of
JobEngineError. Background failures are never raised to the submitter; they
are recorded in the job's error marker file instead.
"""

from typing import Any, List, Tuple


class JobEngineError(Exception):
    """Base class for all job engine errors."""
    pass


class DuplicateIdError(JobEngineError):
    """Raised when submitting a job whose directory already exists."""

    def __init__(self, job_id: Any):
        self.job_id = job_id
        super().__init__(f"Job with id '{job_id}' already exists")


class JobNotFoundError(JobEngineError):
    """Raised when the directory of a job does not exist."""

    def __init__(self, job_id: Any):
        self.job_id = job_id
        super().__init__(f"Job '{job_id}' not found")


class ResultNotFoundError(JobEngineError):
    """Raised when a requested file is absent from a job directory."""

    def __init__(self, job_id: Any, name: str):
        self.job_id = job_id
        self.name = name
        super().__init__(f"File '{name}' not found for job '{job_id}'")


class IdParseError(JobEngineError):
    """Raised when a directory name cannot be parsed back into an id."""

    def __init__(self, directory_name: str, reason: str = ""):
        self.directory_name = directory_name
        message = f"Cannot parse job id from directory name '{directory_name}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ExhaustedError(JobEngineError):
    """Raised when an id allocator runs out of retry budget."""
    pass


class StatusError(JobEngineError):
    """Raised when the sentinel files of a job cannot be turned into a status."""
    pass


class WriterOpenError(JobEngineError):
    """Raised when one of the result writers fails to open."""
    pass


class JobInitError(JobEngineError):
    """Raised when a job's init step fails during submission."""

    def __init__(self, job_id: Any, cause: BaseException):
        self.job_id = job_id
        super().__init__(f"Init of job '{job_id}' failed: {type(cause).__name__}: {cause}")


class JobNotCompletedError(JobEngineError):
    """Raised when deleting a job that has no end marker."""

    def __init__(self, job_id: Any):
        self.job_id = job_id
        super().__init__(f"Job '{job_id}' is not completed and cannot be deleted")


class AggregateJobError(JobEngineError):
    """
    Raised when a bulk operation has one or more failures.

    Attributes:
        failures: List of (job_id, exception) pairs
    """

    def __init__(self, message: str, failures: List[Tuple[Any, BaseException]]):
        self.failures = failures
        details = "; ".join(f"{job_id}: {error}" for job_id, error in failures)
        super().__init__(f"{message} ({len(failures)} failure(s)): {details}")
