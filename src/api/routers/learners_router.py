"""
Learner endpoints.

Endpoints for:
- Reading a learner profile
- Recording assessment results (with dependency inference)
- Generating a portal code
- Sharing a note to the learner's portal
"""
from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from config import Settings, get_settings
from src.api.deps import get_data_dir, http_error
from src.core.errors import PedagogyError
from src.learning.assessment import AssessedSkill, assess_learner
from src.learning.portal import generate_portal_code
from src.store.assessments import record_completion
from src.store.learners import read_learner
from src.store.notes import share_note

router = APIRouter()


# ========================================
# Request Models
# ========================================


class AssessedSkillRequest(BaseModel):
    skill_id: str = Field(..., alias="skillId")
    confidence: float = Field(..., ge=0, le=1)
    bloom_level: str = Field(..., alias="bloomLevel")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}


class AssessLearnerRequest(BaseModel):
    domain: str
    assessed_skills: List[AssessedSkillRequest] = Field(..., min_length=1, alias="assessedSkills")
    assessment_code: Optional[str] = Field(
        None, alias="assessmentCode", description="Mark this assessment session complete for the learner"
    )

    model_config = {"populate_by_name": True}


class PortalCodeRequest(BaseModel):
    group_id: str = Field(..., min_length=1, alias="groupId")

    model_config = {"populate_by_name": True}


class ShareNoteRequest(BaseModel):
    group_id: str = Field(..., alias="groupId")
    content: str = Field(..., min_length=1)
    audience_hint: Literal["learner", "parent", "employer", "general"] = Field(
        "general", alias="audienceHint"
    )
    pinned: bool = False

    model_config = {"populate_by_name": True}


# ========================================
# Endpoints
# ========================================


@router.get("/{learner_id}")
def get_learner(learner_id: str, data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    try:
        record = read_learner(data_dir, learner_id)
    except PedagogyError as e:
        raise http_error(e)
    return {"id": record.id, "profile": asdict(record.profile), "content": record.content}


@router.post("/{learner_id}/assessments")
def post_assessment(
    learner_id: str,
    request: AssessLearnerRequest,
    data_dir: Path = Depends(get_data_dir),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Record assessed skills, infer prerequisites, and optionally log a session completion."""
    skills = [
        AssessedSkill(s.skill_id, s.confidence, s.bloom_level, s.notes) for s in request.assessed_skills
    ]
    try:
        result = assess_learner(
            data_dir, learner_id, request.domain, skills, **settings.get_inference_config()
        )
        if request.assessment_code:
            summary = ", ".join(f"{s.skill_id} ({s.confidence:g})" for s in skills)
            record_completion(data_dir, request.assessment_code, learner_id, summary)
    except PedagogyError as e:
        raise http_error(e)

    payload = asdict(result)
    payload["profile_path"] = str(result.profile_path)
    return payload


@router.post("/{learner_id}/portal-code")
def post_portal_code(
    learner_id: str,
    request: PortalCodeRequest,
    data_dir: Path = Depends(get_data_dir),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    try:
        code = generate_portal_code(
            data_dir,
            learner_id,
            request.group_id,
            settings.frontend_url,
            length=settings.portal_code_length,
        )
    except PedagogyError as e:
        raise http_error(e)
    return asdict(code)


@router.post("/{learner_id}/notes")
def post_note(
    learner_id: str,
    request: ShareNoteRequest,
    data_dir: Path = Depends(get_data_dir),
) -> dict[str, Any]:
    try:
        note = share_note(
            data_dir,
            learner_id,
            request.group_id,
            request.content,
            audience_hint=request.audience_hint,
            pinned=request.pinned,
        )
    except PedagogyError as e:
        raise http_error(e)
    return {"shared": True, "note": note.model_dump(mode="json", by_alias=True), "preview": note.preview}
