"""API routers for the pedagogy engine."""

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

__all__ = [
    "assess_router",
    "curricula_router",
    "domains_router",
    "educators_router",
    "groups_router",
    "learners_router",
    "lessons_router",
    "portal_router",
    "ws_router",
]
