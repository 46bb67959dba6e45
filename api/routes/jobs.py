"""
REST endpoints for job management.

Provides:
- POST /api/jobs - Submit new job under a new id
- PUT /api/jobs/{id} - Submit new job under the given id
- GET /api/jobs/count - Number of jobs
- GET /api/jobs/ids - All job ids
- GET /api/jobs/ids/{state} - Ids of running, completed or failed jobs
- GET /api/jobs/status - Status of all started jobs
- GET /api/jobs/{id}/status - Status of one job
- DELETE /api/jobs/{id} - Delete a completed job
- DELETE /api/jobs - Delete all jobs
"""

import logging

from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_session, id_sort_key, parse_job_id, sorted_ids
from api.schemas import (
    JobIdsResponse,
    JobStatusResponse,
    JobSubmit,
    success_response,
)
from job_engine.registry import get_handler
from job_engine.session import JobSession
from job_engine.status import JobState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


def ids_response(ids) -> dict:
    response_data = JobIdsResponse(ids=sorted_ids(ids), total=len(ids))
    return success_response(data=response_data.model_dump(mode='json'))


# =============================================================================
# Submission
# =============================================================================

@router.post("", status_code=200)
async def submit_job(
    request: JobSubmit,
    session: JobSession = Depends(get_session)
):
    """
    Submit a new job under a newly allocated id.

    The job's init() runs before the response; run() executes in the
    background. Returns immediately with the job id.

    Example:
        POST /api/jobs
        {
            "job_type": "optimization",
            "input": {"nb_flows": 20}
        }
    """
    job = get_handler(request.job_type)
    job_id = session.submit_get_id(job, request.input)
    logger.info("Submitted job %s (type=%s)", str(job_id)[:8], request.job_type)

    return JSONResponse(
        status_code=200,
        content=success_response(data={"id": str(job_id)}, code=201)
    )


@router.put("/{job_id}", status_code=200)
async def submit_job_with_id(
    job_id: str,
    request: JobSubmit,
    session: JobSession = Depends(get_session)
):
    """
    Submit a new job under the given id.

    Example:
        PUT /api/jobs/my-run-1
        {"job_type": "optimization", "input": {}}
    """
    job = get_handler(request.job_type)
    submitted_id = session.submit_with_id(job, request.input, parse_job_id(session, job_id))
    logger.info("Submitted job %s (type=%s)", str(submitted_id)[:8], request.job_type)

    return JSONResponse(
        status_code=200,
        content=success_response(data={"id": str(submitted_id)}, code=201)
    )


# =============================================================================
# Queries
# =============================================================================

@router.get("/count")
async def count_jobs(session: JobSession = Depends(get_session)):
    """Number of job directories."""
    return JSONResponse(
        status_code=200,
        content=success_response(data={"count": session.get_nb_jobs()})
    )


@router.get("/ids")
async def list_ids(session: JobSession = Depends(get_session)):
    """
    List the ids of all jobs.

    Example:
        GET /api/jobs/ids
    """
    return JSONResponse(status_code=200, content=ids_response(session.get_all_ids()))


@router.get("/ids/{state}")
async def list_ids_by_state(
    state: str,
    session: JobSession = Depends(get_session)
):
    """
    List the ids of started jobs in one state.

    Example:
        GET /api/jobs/ids/failed
    """
    try:
        job_state = JobState(state)
    except ValueError as e:
        valid_states = [s.value for s in JobState]
        raise HTTPException(
            status_code=400,
            detail=f"Invalid state: {state}. Must be one of: {valid_states}"
        ) from e

    return JSONResponse(status_code=200, content=ids_response(session.get_ids_by_state(job_state)))


@router.get("/status")
async def list_statuses(session: JobSession = Depends(get_session)):
    """Status of every started job."""
    statuses = session.get_statuses()
    data = [
        JobStatusResponse.from_status(statuses[key]).model_dump(mode='json')
        for key in sorted(statuses, key=id_sort_key)
    ]
    return JSONResponse(
        status_code=200,
        content=success_response(data={"statuses": data, "total": len(data)})
    )


@router.get("/{job_id}/status")
async def get_status(
    job_id: str,
    session: JobSession = Depends(get_session)
):
    """
    Get the status of a job.

    Example:
        GET /api/jobs/3/status
    """
    key = parse_job_id(session, job_id)
    session.get_job_dir(key)
    status = session.get_status(key)

    return JSONResponse(
        status_code=200,
        content=success_response(
            data=JobStatusResponse.from_status(status).model_dump(mode='json')
        )
    )


# =============================================================================
# Deletion
# =============================================================================

@router.delete("/{job_id}", status_code=200)
async def delete_job(
    job_id: str,
    session: JobSession = Depends(get_session)
):
    """
    Delete a completed job and all its files.

    Returns 409 if the job has not finished yet.
    """
    session.delete(parse_job_id(session, job_id))
    return JSONResponse(status_code=200, content=success_response(data={"id": job_id}))


@router.delete("", status_code=200)
async def delete_all_jobs(session: JobSession = Depends(get_session)):
    """Delete every job; reports all failures at once."""
    count = session.get_nb_jobs()
    session.delete_all()
    return JSONResponse(status_code=200, content=success_response(data={"deleted": count}))
