"""
Pydantic schemas for API request/response models.

This module defines:
- ApiResponse: Unified wrapper for all API responses
- JobSubmit: Request body for job submission
- JobStatusResponse: Status of one job
- JobIdsResponse: List of job ids
"""

from typing import Dict, Any, Optional, List, TypeVar, Generic
from pydantic import BaseModel, Field

from job_engine.status import JobStatus

# Generic type for wrapped data
T = TypeVar('T')


class ApiResponse(BaseModel, Generic[T]):
    """
    Unified API response wrapper.

    All API responses are wrapped in this format for consistency.
    Clients check the 'status' field to determine success or failure.

    Success example:
        {
            "code": 200,
            "status": "succeed",
            "data": { "id": "3" }
        }

    Error example:
        {
            "code": 409,
            "status": "failed",
            "error": "Job with id '3' already exists"
        }
    """
    code: int = Field(..., description="HTTP status code")
    status: str = Field(..., description="Business status: 'succeed' or 'failed'")
    data: Optional[T] = Field(default=None, description="Response data (present when succeed)")
    error: Optional[str] = Field(default=None, description="Error message (present when failed)")

    class Config:
        from_attributes = True


def success_response(data: Any = None, code: int = 200) -> dict:
    """
    Helper function to create a success response.

    Args:
        data: Response data (job id, status, ...)
        code: HTTP status code (default 200)

    Returns:
        {
            "code": 200,
            "status": "succeed",
            "data": { ... }
        }
    """
    return {
        "code": code,
        "status": "succeed",
        "data": data
    }


def error_response(error: str, code: int = 400) -> dict:
    """
    Helper function to create an error response.

    Args:
        error: Error message describing what went wrong
        code: HTTP status code (default 400)

    Returns:
        {
            "code": 404,
            "status": "failed",
            "error": "Error message here"
        }
    """
    return {
        "code": code,
        "status": "failed",
        "error": error
    }


class JobSubmit(BaseModel):
    """
    Request body for job submission.

    Example:
        {
            "job_type": "optimization",
            "input": {"nb_flows": 20, "delay_seconds": 10}
        }
    """
    job_type: str = Field(
        default="optimization",
        description="Type of job (see job_engine.registry)"
    )
    input: Dict[str, Any] = Field(
        default_factory=dict,
        description="Input passed to the job's init()"
    )


class JobStatusResponse(BaseModel):
    """
    Status of one job, derived from its sentinel files.

    Example:
        {
            "job_id": "3",
            "state": "completed",
            "time_begin": "2024-01-01 12:00:00",
            "time_end": "2024-01-01 12:00:10",
            "error": null,
            ...
        }
    """
    job_id: str = Field(..., description="Job id")
    state: str = Field(..., description="running, completed or failed")
    time_begin: str = Field(..., description="Begin timestamp")
    time_end: Optional[str] = Field(default=None, description="End timestamp")
    error: Optional[str] = Field(default=None, description="Accumulated error text")
    is_running: bool = Field(..., description="Neither ended nor failed")
    is_completed: bool = Field(..., description="End marker present")
    is_error: bool = Field(..., description="Error marker present")

    @classmethod
    def from_status(cls, status: JobStatus) -> "JobStatusResponse":
        return cls(**status.to_dict())


class JobIdsResponse(BaseModel):
    """Response body for id listings."""
    ids: List[str] = Field(..., description="Job ids")
    total: int = Field(..., description="Number of ids")
