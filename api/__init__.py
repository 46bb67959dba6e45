"""
API package for the Job Engine.

Provides REST endpoints for job submission, status and result downloads.

Usage:
    # Start API server
    uvicorn api.app:app --host 0.0.0.0 --port 8000
"""

from api.app import app, create_app

__all__ = ["app", "create_app"]
