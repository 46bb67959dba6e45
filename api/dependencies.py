"""
Shared FastAPI dependencies.

The session is created once by the application lifespan and stored on
app.state; routes receive it through get_session().
"""

from typing import Any

from fastapi import Request

from job_engine.session import JobSession


def get_session(request: Request) -> JobSession:
    """Dependency to get the JobSession of the application."""
    return request.app.state.session


def parse_job_id(session: JobSession, raw_id: str) -> Any:
    """
    Convert a job id from a URL into the session's id type.

    Raises:
        IdParseError: If raw_id is not a valid id for the session
    """
    return session.paths.allocator.parse_id(raw_id)


def id_sort_key(job_id: Any) -> tuple:
    """Sort key putting numeric ids in numeric order before other ids."""
    text = str(job_id)
    if text.isdigit():
        return (0, len(text), text)
    return (1, 0, text)


def sorted_ids(ids) -> list:
    """Ids as strings, in id_sort_key order."""
    return [str(i) for i in sorted(ids, key=id_sort_key)]
