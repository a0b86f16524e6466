"""
Educator profile endpoints.

Endpoints for:
- Listing educator profiles
- Fetching one profile with a summary of styles and strengths
- Creating or updating a profile
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.api.deps import get_data_dir, http_error
from src.core.errors import PedagogyError
from src.store.educators import educator_summary, list_educators, load_educator, update_educator

router = APIRouter()


class EducatorUpdateRequest(BaseModel):
    """Fields to set; mappings are merged into the stored profile."""

    name: Optional[str] = None
    bio: Optional[str] = None
    teaching_style: Optional[Dict[str, float]] = Field(None, alias="teachingStyle")
    strengths: Optional[List[str]] = None
    growth_areas: Optional[List[str]] = Field(None, alias="growthAreas")
    content_confidence: Optional[Dict[str, Any]] = Field(None, alias="contentConfidence")
    preferences: Optional[Dict[str, Any]] = None
    timing_patterns: Optional[Dict[str, Any]] = Field(None, alias="timingPatterns")
    growth_nudges: Optional[List[str]] = Field(None, alias="growthNudges")
    increment_sessions: bool = Field(False, alias="incrementSessions")
    increment_debriefs: bool = Field(False, alias="incrementDebriefs")

    model_config = {"populate_by_name": True}


@router.get("")
def get_educators(data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    educators = list_educators(data_dir)
    return {"educators": educators, "total": len(educators)}


@router.get("/{educator_id}")
def get_educator(educator_id: str, data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    try:
        profile = load_educator(data_dir, educator_id)
    except PedagogyError as e:
        raise http_error(e)
    return {"profile": profile.model_dump(), "summary": educator_summary(profile)}


@router.put("/{educator_id}")
def put_educator(
    educator_id: str,
    request: EducatorUpdateRequest,
    data_dir: Path = Depends(get_data_dir),
) -> dict[str, Any]:
    """Create the profile if it does not exist (``name`` required), else update it."""
    updates = request.model_dump(exclude={"increment_sessions", "increment_debriefs"}, exclude_none=True)
    try:
        profile, action = update_educator(
            data_dir,
            educator_id,
            updates,
            increment_sessions=request.increment_sessions,
            increment_debriefs=request.increment_debriefs,
        )
    except PedagogyError as e:
        raise http_error(e)
    return {"action": action, "profile": profile.model_dump()}
