"""
REST endpoints for job result files.

Provides:
- GET /api/jobs/{job_id}/files/{filename} - Download one file
- GET /api/jobs/{job_id}/files/{filename}/text - Read one file as text
- GET /api/jobs/{job_id}/zip?names=a&names=b - Download selected files as ZIP
- GET /api/jobs/{job_id}/zip-all - Download all configured result files as ZIP

Archives are created inside the job directory and deleted with the job.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse, JSONResponse

from api.dependencies import get_session, parse_job_id
from api.schemas import success_response
from job_engine.session import JobSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["results"])


@router.get("/{job_id}/files/{filename}")
async def download_file(
    job_id: str,
    filename: str,
    session: JobSession = Depends(get_session)
):
    """
    Download a file of a job.

    Example:
        GET /api/jobs/3/files/flows.csv
    """
    key = parse_job_id(session, job_id)
    session.get_job_dir(key)
    path = session.get_download_path(key, filename)

    return FileResponse(
        path=str(path),
        filename=filename,
        media_type="application/octet-stream"
    )


@router.get("/{job_id}/files/{filename}/text")
async def read_file_text(
    job_id: str,
    filename: str,
    session: JobSession = Depends(get_session)
):
    """
    Read a file of a job as UTF-8 text.

    Example:
        GET /api/jobs/3/files/costs.csv/text
    """
    key = parse_job_id(session, job_id)
    session.get_job_dir(key)
    text = session.read_text(key, filename)

    return JSONResponse(
        status_code=200,
        content=success_response(data={"filename": filename, "text": text})
    )


@router.get("/{job_id}/zip")
async def download_zip(
    job_id: str,
    names: List[str] = Query(..., description="Files to include"),
    zip_name: Optional[str] = Query(None, description="Archive name (random if omitted)"),
    session: JobSession = Depends(get_session)
):
    """
    Download selected files of a job as a ZIP archive.

    Example:
        GET /api/jobs/3/zip?names=flows.csv&names=costs.csv&zip_name=results.zip
    """
    key = parse_job_id(session, job_id)
    session.get_job_dir(key)
    zip_path = session.get_download_path_zipped(key, names, zip_name)
    logger.info("Created archive %s for job %s", zip_path.name, job_id[:8])

    return FileResponse(
        path=str(zip_path),
        filename=zip_path.name,
        media_type="application/zip"
    )


@router.get("/{job_id}/zip-all")
async def download_zip_all(
    job_id: str,
    zip_name: Optional[str] = Query(None, description="Archive name (random if omitted)"),
    session: JobSession = Depends(get_session)
):
    """
    Download all configured result files of a job as a ZIP archive.

    Example:
        GET /api/jobs/3/zip-all
    """
    key = parse_job_id(session, job_id)
    session.get_job_dir(key)
    zip_path = session.get_download_path_zipped_all(key, zip_name)
    logger.info("Created archive %s for job %s", zip_path.name, job_id[:8])

    return FileResponse(
        path=str(zip_path),
        filename=zip_path.name,
        media_type="application/zip"
    )
