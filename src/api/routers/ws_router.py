"""
WebSocket endpoints.

- ``/ws/chat``: educator conversation with the pedagogy agent
- ``/ws/live?lessonId=``: terse teaching companion during a live lesson

Each connection gets its own session; client frames are
``{"type": "message", "message": ...}`` (live frames may add
``sectionContext``). Turns run as tasks so a message sent mid-turn is
answered with a busy error instead of queueing.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from loguru import logger

from config import Settings, get_settings
from src.agents.definitions import AgentDefinition, apply_model_overrides, load_agent_definitions
from src.agents.relay import Channel, ChatRelay, RequestBuilder
from src.agents.runtime import build_educator_request, build_live_companion_request

router = APIRouter()


def _agents(settings: Settings) -> dict[str, AgentDefinition]:
    return apply_model_overrides(
        load_agent_definitions(settings.agents_dir),
        {
            "assessment-agent": settings.assessment_model,
            "lesson-agent": settings.lesson_model,
            "curriculum-agent": settings.curriculum_model,
        },
    )


async def _serve(websocket: WebSocket, channel: Channel, build_request: RequestBuilder) -> None:
    manager = websocket.app.state.session_manager
    runtime = websocket.app.state.runtime
    session = manager.create()
    logger.info(f"[ws/{channel}] New session: {session.id}")

    async def send(frame: dict[str, Any]) -> None:
        if websocket.application_state == WebSocketState.CONNECTED:
            await websocket.send_json(frame)

    relay = ChatRelay(session, manager, runtime, send, build_request, channel=channel)
    tasks: set[asyncio.Task] = set()

    await send({"type": "session", "sessionId": session.id})
    try:
        while True:
            raw = await websocket.receive_text()
            task = asyncio.create_task(relay.handle_raw(raw))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
    except WebSocketDisconnect:
        logger.info(f"[ws/{channel}] Session disconnected: {session.id}")
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await manager.remove(session.id)


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, settings: Settings = Depends(get_settings)) -> None:
    await websocket.accept()
    agents = _agents(settings)

    def build(message: str, session_id: str, resume: Optional[str], _section: Optional[str]):
        return build_educator_request(
            message, agents, model=settings.educator_model, session_id=session_id, resume=resume
        )

    await _serve(websocket, "chat", build)


@router.websocket("/ws/live")
async def live_socket(
    websocket: WebSocket,
    lesson_id: Optional[str] = Query(None, alias="lessonId"),
    settings: Settings = Depends(get_settings),
) -> None:
    await websocket.accept()
    agents = _agents(settings)
    logger.info(f"[ws/live] Lesson: {lesson_id}")

    def build(message: str, session_id: str, resume: Optional[str], section: Optional[str]):
        return build_live_companion_request(
            settings.data_path,
            lesson_id or "",
            message,
            agents,
            model=settings.live_model,
            session_id=session_id,
            resume=resume,
            section_context=section,
        )

    await _serve(websocket, "live", build)
