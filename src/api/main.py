"""
FastAPI application for the pedagogy engine.

Provides REST API for:
- Skill graphs, dependency inference and graph validation
- Groups, learner profiles, assessments and the learner portal
- Lesson plans, live section feedback, debriefs and curricula
- Domain authoring, teaching notes and teaching wisdom
- Educator profiles

And WebSocket relays to the external agent runtime for educator chat and
the live teaching companion.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from config import Settings, get_settings
from src.agents.runtime import AgentRuntime, HttpAgentRuntime
from src.api.deps import http_error
from src.api.routers import (
    assess_router,
    curricula_router,
    domains_router,
    educators_router,
    groups_router,
    learners_router,
    lessons_router,
    portal_router,
    ws_router,
)
from src.core.errors import PedagogyError
from src.core.logging import configure_logging
from src.sessions.manager import SessionManager

VERSION = "0.1.0"


async def _cleanup_loop(manager: SessionManager, interval: float, max_age: timedelta) -> None:
    """Periodically drop sessions that have been idle too long."""
    while True:
        await asyncio.sleep(interval)
        removed = await manager.cleanup(max_age)
        if removed:
            logger.info(f"[cleanup] Removed {removed} stale sessions")


def create_app(
    settings: Optional[Settings] = None,
    runtime: Optional[AgentRuntime] = None,
    session_manager: Optional[SessionManager] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Overrides ``get_settings()`` for every route
        runtime: Agent runtime to relay to (defaults to the HTTP runtime)
        session_manager: Session registry (defaults to a fresh one)
    """
    app_settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(app_settings)
        logger.info("Starting pedagogy engine...")

        app.state.started_at = time.monotonic()
        app.state.session_manager = session_manager or SessionManager()
        app.state.runtime = runtime or HttpAgentRuntime(
            app_settings.agent_runtime_url,
            api_key=app_settings.agent_runtime_api_key,
            timeout=app_settings.agent_runtime_timeout,
        )
        cleanup = asyncio.create_task(
            _cleanup_loop(
                app.state.session_manager,
                app_settings.session_cleanup_interval_minutes * 60,
                timedelta(hours=app_settings.session_max_age_hours),
            )
        )
        logger.info(f"Data directory: {app_settings.data_path}")
        logger.info(f"Service started on {app_settings.api_host}:{app_settings.api_port}")

        yield

        logger.info("Shutting down, cleaning up sessions...")
        cleanup.cancel()
        for session in app.state.session_manager.list():
            await app.state.session_manager.remove(session.id)
        await app.state.runtime.close()

    app = FastAPI(
        title="Pedagogy Engine",
        description="""
    Planning, delivery and assessment support for educators.

    ## Features

    - **Skill graphs**: Bloom's-levelled skills with weighted prerequisite edges
    - **Dependency inference**: Demonstrated skills imply confidence in their prerequisites
    - **Groups & learners**: Markdown profiles, assessment links, group gap analysis
    - **Lessons & curricula**: Timed lesson parsing, multi-session sequencing
    - **Learner portal**: Read-only, localized progress view
    - **Agent relay**: WebSocket chat with the external agent runtime
    """,
        version=VERSION,
        lifespan=lifespan,
    )

    if settings is not None:
        app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(PedagogyError)
    async def pedagogy_error_handler(request: Request, exc: PedagogyError) -> JSONResponse:
        error = http_error(exc)
        return JSONResponse(status_code=error.status_code, content={"detail": error.detail})

    # ========================================
    # Health & Status Endpoints
    # ========================================

    @app.get("/", tags=["Health"])
    def root() -> dict[str, str]:
        return {"service": "pedagogy-engine", "version": VERSION, "status": "ok"}

    @app.get("/api/status", tags=["Health"])
    def status(request: Request) -> dict[str, Any]:
        sessions = request.app.state.session_manager.list()
        return {
            "status": "ok",
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            "sessions": len(sessions),
            "activeSessions": [
                {
                    "id": s.id,
                    "createdAt": s.created_at.isoformat(),
                    "lastActivity": s.last_activity.isoformat(),
                }
                for s in sessions
            ],
        }

    app.include_router(assess_router.router, prefix="/api/assess", tags=["Assessment"])
    app.include_router(lessons_router.router, prefix="/api/lessons", tags=["Lessons"])
    app.include_router(portal_router.router, prefix="/api/portal", tags=["Portal"])
    app.include_router(domains_router.router, prefix="/api/domains", tags=["Domains"])
    app.include_router(groups_router.router, prefix="/api/groups", tags=["Groups"])
    app.include_router(learners_router.router, prefix="/api/learners", tags=["Learners"])
    app.include_router(educators_router.router, prefix="/api/educators", tags=["Educators"])
    app.include_router(curricula_router.router, prefix="/api/curricula", tags=["Curricula"])
    app.include_router(ws_router.router, tags=["WebSocket"])

    return app


app = create_app()
