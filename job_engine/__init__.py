"""
Filesystem-backed asynchronous job engine.

Jobs are submitted to a JobSession, run on background threads, and leave
their whole state (timestamps, errors, results) in one directory per job.
"""

from job_engine.errors import (
    AggregateJobError,
    DuplicateIdError,
    ExhaustedError,
    IdParseError,
    JobEngineError,
    JobInitError,
    JobNotCompletedError,
    JobNotFoundError,
    ResultNotFoundError,
    StatusError,
    WriterOpenError,
)
from job_engine.handlers import Job, JobFailedError, OptimizationJob, ProcessJob
from job_engine.ids import IdAllocator, SequentialIdAllocator, UuidIdAllocator, get_allocator
from job_engine.inputs import FilesInput
from job_engine.paths import JobPaths
from job_engine.process_runner import ExternalProcess
from job_engine.session import (
    JobSession,
    new_session_with_string_id,
    new_session_with_uuid,
    session_from_config,
)
from job_engine.status import JobState, JobStatus, read_run_status, read_status
from job_engine.writers import ResultWriters

__all__ = [
    # Session
    "JobSession",
    "new_session_with_string_id",
    "new_session_with_uuid",
    "session_from_config",
    # Jobs
    "Job",
    "JobFailedError",
    "OptimizationJob",
    "ProcessJob",
    "FilesInput",
    "ExternalProcess",
    # Building blocks
    "IdAllocator",
    "SequentialIdAllocator",
    "UuidIdAllocator",
    "get_allocator",
    "JobPaths",
    "ResultWriters",
    "JobState",
    "JobStatus",
    "read_status",
    "read_run_status",
    # Errors
    "JobEngineError",
    "DuplicateIdError",
    "JobNotFoundError",
    "ResultNotFoundError",
    "IdParseError",
    "ExhaustedError",
    "StatusError",
    "WriterOpenError",
    "JobInitError",
    "JobNotCompletedError",
    "AggregateJobError",
]
