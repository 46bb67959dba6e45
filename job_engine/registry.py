"""
Job handler registry.

Maps job type strings to their handler classes.
Adding a new job type only requires adding an entry here.

Only handlers that are safe to start from untrusted input belong here;
ProcessJob runs arbitrary commands and is left out on purpose.
"""

from typing import Dict, Type

from job_engine.handlers.base import Job
from job_engine.handlers.optimization import OptimizationJob


# Registry of job type -> handler class
JOB_HANDLERS: Dict[str, Type[Job]] = {
    "optimization": OptimizationJob,
}


def get_handler(job_type: str) -> Job:
    """
    Get a new handler instance for the given job type.

    A job keeps state between init() and run(), so every submission needs
    its own instance.

    Args:
        job_type: Job type string (e.g., "optimization")

    Returns:
        Instantiated handler for the job type

    Raises:
        ValueError: If job_type is not registered
    """
    handler_cls = JOB_HANDLERS.get(job_type)
    if handler_cls is None:
        available = ", ".join(JOB_HANDLERS.keys())
        raise ValueError(f"Unknown job type: {job_type}. Available: {available}")
    return handler_cls()
