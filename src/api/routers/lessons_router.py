"""
Lesson plan endpoints.

Endpoints for:
- Listing lesson plans with their metadata
- Fetching one parsed lesson (sections, timing, objectives)
- Recording live section feedback from the teaching companion
- Processing post-session debriefs
"""
from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.api.deps import get_data_dir, http_error
from src.core.errors import PedagogyError
from src.lessons.debrief import Debrief, process_debrief
from src.lessons.store import SectionFeedback, list_lessons, load_lesson, record_section_feedback

router = APIRouter()


class SectionFeedbackRequest(BaseModel):
    section_id: Optional[str] = Field(None, alias="sectionId")
    feedback: Optional[SectionFeedback] = None
    notes: Optional[str] = None
    elapsed_min: Optional[float] = Field(None, alias="elapsedMin")

    model_config = {"populate_by_name": True}


@router.get("")
def get_lessons(data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    return {"lessons": list_lessons(data_dir)}


@router.get("/{lesson_id}")
def get_lesson(lesson_id: str, data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    """Full parsed lesson plan."""
    try:
        lesson = load_lesson(data_dir, lesson_id)
    except PedagogyError as e:
        raise http_error(e)
    return {"lesson": asdict(lesson)}


@router.post("/{lesson_id}/feedback")
def post_section_feedback(
    lesson_id: str,
    request: SectionFeedbackRequest,
    data_dir: Path = Depends(get_data_dir),
) -> dict[str, bool]:
    """Append section feedback to today's live-session log."""
    if not request.section_id or not request.feedback:
        raise HTTPException(status_code=400, detail="Missing sectionId or feedback")
    try:
        record_section_feedback(
            data_dir,
            lesson_id,
            request.section_id,
            request.feedback,
            notes=request.notes,
            elapsed_min=request.elapsed_min,
        )
    except PedagogyError as e:
        raise http_error(e)
    return {"saved": True}


@router.post("/{lesson_id}/debrief")
def post_debrief(
    lesson_id: str,
    request: Debrief,
    data_dir: Path = Depends(get_data_dir),
) -> dict[str, Any]:
    """Apply a post-session debrief to learner, domain and educator records."""
    try:
        return process_debrief(data_dir, request.model_copy(update={"lesson_id": lesson_id}))
    except PedagogyError as e:
        raise http_error(e)
