"""
Job handlers for different job types.

Each handler implements the Job interface (init + run).
"""

from job_engine.handlers.base import Job, JobFailedError
from job_engine.handlers.optimization import OptimizationJob
from job_engine.handlers.process import ProcessJob

__all__ = [
    "Job",
    "JobFailedError",
    "OptimizationJob",
    "ProcessJob",
]
