"""
Learner assessment endpoints.

Learners reach these through an assessment link (``/assess/{code}``); each
POST is a one-shot turn relayed to the assessment agent.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from config import Settings, get_settings
from src.agents.definitions import load_agent_definitions
from src.agents.relay import collect_assessment_reply
from src.agents.runtime import AgentRuntime, build_assessment_request
from src.api.deps import get_data_dir, get_runtime, http_error
from src.core.errors import PedagogyError
from src.store.assessments import assessment_exists
from src.store.paths import validate_record_id

router = APIRouter()


class AssessTurnRequest(BaseModel):
    code: Optional[str] = None
    learner_name: Optional[str] = Field(None, alias="learnerName")
    message: Optional[str] = None

    model_config = {"populate_by_name": True}


@router.get("/{code}")
def validate_assessment_code(code: str, data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    """Check that an assessment code exists before the learner starts."""
    try:
        validate_record_id(code)
        exists = assessment_exists(data_dir, code)
    except PedagogyError as e:
        raise http_error(e)
    if not exists:
        raise HTTPException(status_code=404, detail=f"Assessment '{code}' not found")
    return {"valid": True, "code": code}


@router.post("")
async def assessment_turn(
    request: AssessTurnRequest,
    data_dir: Path = Depends(get_data_dir),
    runtime: AgentRuntime = Depends(get_runtime),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Relay one learner message to the assessment agent and return its reply."""
    if not request.code or not request.learner_name or not request.message:
        raise HTTPException(
            status_code=400, detail="Missing required fields: code, learnerName, message"
        )

    logger.info(f"Assessment turn for {request.code} ({request.learner_name})")
    try:
        validate_record_id(request.code)
        agents = load_agent_definitions(settings.agents_dir)
        query_request = build_assessment_request(
            data_dir,
            request.code,
            request.learner_name,
            request.message,
            agents,
            model=settings.assessment_model,
        )
        query = await runtime.open_query(query_request)
        return await collect_assessment_reply(query)
    except PedagogyError as e:
        raise http_error(e)
