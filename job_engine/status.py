"""
Job status derived from the sentinel files of a job directory.

This module defines:
- JobState: Enum for the derived lifecycle states
- JobStatus: Snapshot (job_id, time_begin, time_end, error)
- read_status: Reconstructs the snapshot from disk
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, Optional

from deprecated import deprecated

from core.constants import TIME_FORMAT
from job_engine.errors import StatusError
from job_engine.ids import IdT
from job_engine.paths import JobPaths, parse_time

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    """Derived job lifecycle states."""
    RUNNING = "running"          # Begin marker only
    COMPLETED = "completed"      # End marker present, no error
    FAILED = "failed"            # Error marker present (with or without end marker)


@dataclass(frozen=True)
class JobStatus(Generic[IdT]):
    """
    Status of the execution of a job.

    Attributes:
        job_id: Id of the job
        time_begin: When the execution began
        time_end: When the execution ended; None while running
        error: Accumulated error text; None if no error occurred
    """
    job_id: IdT
    time_begin: datetime
    time_end: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.time_end is not None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def is_running(self) -> bool:
        return self.time_end is None and self.error is None

    @property
    def state(self) -> JobState:
        if self.is_error:
            return JobState.FAILED
        if self.is_completed:
            return JobState.COMPLETED
        return JobState.RUNNING

    @property
    def duration_seconds(self) -> float:
        """Job duration in seconds (up to now if still running)."""
        end_time = self.time_end or datetime.now()
        return (end_time - self.time_begin).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON friendly dictionary."""
        return {
            "job_id": str(self.job_id),
            "state": self.state.value,
            "time_begin": self.time_begin.strftime(TIME_FORMAT),
            "time_end": self.time_end.strftime(TIME_FORMAT) if self.time_end else None,
            "error": self.error,
            "is_running": self.is_running,
            "is_completed": self.is_completed,
            "is_error": self.is_error,
        }

    def __repr__(self) -> str:
        return f"JobStatus(id={str(self.job_id)[:8]}, state={self.state.value})"


def read_status(paths: JobPaths, job_id: IdT) -> JobStatus:
    """
    Reconstruct the status of a job from its sentinel files.

    Raises:
        StatusError: If the begin marker is missing, or any marker is unreadable
    """
    time_begin = parse_time(paths.begin_marker_of(job_id))

    end_path = paths.end_marker_of(job_id)
    time_end = parse_time(end_path) if end_path.exists() else None

    error = None
    err_path = paths.error_marker_of(job_id)
    if err_path.exists():
        try:
            error = err_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StatusError(f"Failed to read {err_path.name}: {e}") from e

    return JobStatus(job_id=job_id, time_begin=time_begin, time_end=time_end, error=error)


@deprecated(reason="Use read_status or JobSession.get_status instead")
def read_run_status(paths: JobPaths, job_id: IdT) -> JobStatus:
    """Older name of read_status."""
    return read_status(paths, job_id)
