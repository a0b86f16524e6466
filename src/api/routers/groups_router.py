"""
Group endpoints.

Endpoints for:
- Creating (or loading) a group roster with learner profiles
- Group profile and skill summary
- Prerequisite audits against target skills
- Assessment completion status and assessment link creation
"""
from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from loguru import logger
from pydantic import BaseModel, Field

from config import Settings, get_settings
from src.api.deps import get_data_dir, http_error
from src.core.errors import PedagogyError
from src.learning.group_analysis import audit_prerequisites, check_assessment_status, query_group
from src.store.assessments import create_assessment
from src.store.groups import create_group, read_group
from src.store.learners import LearnerRecord, load_group_learners

router = APIRouter()


# ========================================
# Request Models
# ========================================


class RosterRequest(BaseModel):
    """A group to create, with the names of its members."""

    group_name: str = Field(..., min_length=1, alias="groupName")
    domain: str = Field(..., min_length=1)
    members: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class AuditRequest(BaseModel):
    domain: str
    target_skills: List[str] = Field(..., min_length=1, alias="targetSkills")
    constraints: Optional[Dict[str, Any]] = None

    model_config = {"populate_by_name": True}


class AssessmentLinkRequest(BaseModel):
    domain: str
    target_skills: Optional[List[str]] = Field(None, alias="targetSkills")
    learner_ids: Optional[List[str]] = Field(None, alias="learnerIds")
    context: Optional[str] = None
    educator_id: Optional[str] = Field(None, alias="educatorId")
    lesson_context: Optional[str] = Field(None, alias="lessonContext")

    model_config = {"populate_by_name": True}


def _learner_summary(record: LearnerRecord) -> dict[str, Any]:
    profile = record.profile
    return {
        "id": record.id,
        "name": profile.name,
        "last_assessed": profile.last_assessed,
        "assessed_count": len(profile.assessed),
        "inferred_count": len(profile.inferred),
    }


# ========================================
# Endpoints
# ========================================


@router.post("")
def post_roster(request: RosterRequest, data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    """Create a group and one learner profile per member, or load it if it exists."""
    try:
        result = create_group(data_dir, request.group_name, request.domain, request.members)
    except PedagogyError as e:
        raise http_error(e)
    return {
        "group": result.group,
        "domain": result.domain,
        "is_new": result.is_new,
        "group_file": str(result.group_file),
        "group_content": result.group_content,
        "learners": [_learner_summary(r) for r in result.learners],
    }


@router.get("/{group}")
def get_group(group: str, data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    try:
        content, profile = read_group(data_dir, group)
        learners = load_group_learners(data_dir, group)
    except PedagogyError as e:
        raise http_error(e)
    return {
        "group": asdict(profile),
        "content": content,
        "learners": [_learner_summary(r) for r in learners],
    }


@router.get("/{group}/summary")
def get_group_summary(
    group: str,
    domain: str = Query(..., min_length=1),
    data_dir: Path = Depends(get_data_dir),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Skill distribution, gaps, strengths and pairings across the group."""
    try:
        return query_group(data_dir, group, domain, thresholds=settings.get_threshold_config())
    except PedagogyError as e:
        raise http_error(e)


@router.post("/{group}/audit")
def post_audit(
    group: str,
    request: AuditRequest,
    data_dir: Path = Depends(get_data_dir),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    try:
        return audit_prerequisites(
            data_dir,
            request.domain,
            group,
            request.target_skills,
            constraints=request.constraints,
            thresholds=settings.get_threshold_config(),
        )
    except PedagogyError as e:
        raise http_error(e)


@router.get("/{group}/assessment-status")
def get_assessment_status(
    group: str,
    domain: str = Query(..., min_length=1),
    data_dir: Path = Depends(get_data_dir),
) -> dict[str, Any]:
    try:
        return check_assessment_status(data_dir, group, domain)
    except PedagogyError as e:
        raise http_error(e)


@router.post("/{group}/assessments")
def post_assessment_link(
    group: str,
    request: AssessmentLinkRequest,
    data_dir: Path = Depends(get_data_dir),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Create an assessment session and return its shareable link."""
    try:
        session = create_assessment(
            data_dir,
            group,
            request.domain,
            target_skills=request.target_skills,
            learner_ids=request.learner_ids,
            context=request.context,
            educator_id=request.educator_id,
            lesson_context=request.lesson_context,
        )
    except PedagogyError as e:
        raise http_error(e)

    logger.info(f"Assessment link created for '{group}': {session.code}")
    return {
        "code": session.code,
        "url": f"{settings.frontend_url}/assess/{session.code}",
        "group": group,
        "domain": request.domain,
        "target_skills": request.target_skills or "full_domain",
        "target_learners": request.learner_ids or "all_members",
        "created": session.created,
    }
