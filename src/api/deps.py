"""
Shared router dependencies and error translation.
"""

from __future__ import annotations

from pathlib import Path

from fastapi import Depends, HTTPException, Request

from config import Settings, get_settings
from src.agents.runtime import AgentRuntime
from src.core.errors import (
    AgentRuntimeError,
    GraphValidationError,
    PathTraversalError,
    PedagogyError,
    RecordNotFoundError,
)
from src.sessions.manager import SessionManager


def get_data_dir(settings: Settings = Depends(get_settings)) -> Path:
    return settings.data_path


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_runtime(request: Request) -> AgentRuntime:
    return request.app.state.runtime


def http_error(exc: PedagogyError) -> HTTPException:
    """Translate a service error into the matching HTTP status."""
    if isinstance(exc, RecordNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, GraphValidationError):
        detail: dict | str = {"error": str(exc), **exc.details} if exc.details else str(exc)
        return HTTPException(status_code=400, detail=detail)
    if isinstance(exc, PathTraversalError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, AgentRuntimeError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
