"""
Curriculum endpoints.

Endpoints for:
- Listing and reading multi-session curricula
- Composing a curriculum from a domain graph and group profiles
- Advancing a curriculum after a session is taught
"""
from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel, Field

from config import Settings, get_settings
from src.api.deps import get_data_dir, http_error
from src.core.errors import PedagogyError
from src.curriculum.composer import compose_curriculum
from src.curriculum.models import Outcome
from src.curriculum.progress import advance_curriculum, list_curricula, read_curriculum

router = APIRouter()


class ComposeCurriculumRequest(BaseModel):
    title: str = Field(..., min_length=1)
    domain: str
    group_name: str = Field(..., alias="groupName")
    number_of_sessions: int = Field(..., ge=1, le=50, alias="numberOfSessions")
    session_duration: int = Field(..., ge=10, le=480, alias="sessionDuration")
    learning_objectives: List[str] = Field(..., min_length=1, alias="learningObjectives")
    target_skills: Optional[List[str]] = Field(None, alias="targetSkills")
    constraints: Optional[str] = None
    content: Optional[str] = None

    model_config = {"populate_by_name": True}


class AdvanceCurriculumRequest(BaseModel):
    completed_session: int = Field(..., ge=1, alias="completedSession")
    outcome: Outcome
    notes: Optional[str] = None
    skills_confirmed: Optional[List[str]] = Field(None, alias="skillsConfirmed")
    skills_struggled: Optional[List[str]] = Field(None, alias="skillsStruggled")

    model_config = {"populate_by_name": True}


def _with_str_paths(payload: dict[str, Any]) -> dict[str, Any]:
    payload["file"] = str(payload["file"])
    return payload


@router.get("")
def get_curricula(data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    return {"curricula": list_curricula(data_dir)}


@router.get("/{slug}")
def get_curriculum(slug: str, data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    try:
        content, parsed = read_curriculum(data_dir, slug)
    except PedagogyError as e:
        raise http_error(e)
    return {"slug": slug, "curriculum": asdict(parsed), "content": content}


@router.post("")
def post_curriculum(
    request: ComposeCurriculumRequest,
    data_dir: Path = Depends(get_data_dir),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Sequence target skills across sessions and write the curriculum document."""
    thresholds = settings.get_threshold_config()
    try:
        plan = compose_curriculum(
            data_dir,
            request.title,
            request.domain,
            request.group_name,
            request.number_of_sessions,
            request.session_duration,
            request.learning_objectives,
            target_skills=request.target_skills,
            constraints=request.constraints,
            content=request.content,
            known_threshold=thresholds["known"],
            coverage_threshold=thresholds["curriculum_coverage"],
        )
    except PedagogyError as e:
        raise http_error(e)
    logger.info(f"Curriculum '{plan.slug}' composed: {len(plan.skills_to_teach)} skills")
    return _with_str_paths(asdict(plan))


@router.post("/{slug}/advance")
def post_advance(
    slug: str,
    request: AdvanceCurriculumRequest,
    data_dir: Path = Depends(get_data_dir),
) -> dict[str, Any]:
    try:
        result = advance_curriculum(
            data_dir,
            slug,
            request.completed_session,
            request.outcome,
            notes=request.notes,
            skills_confirmed=request.skills_confirmed,
            skills_struggled=request.skills_struggled,
        )
    except PedagogyError as e:
        raise http_error(e)
    return _with_str_paths(asdict(result))
