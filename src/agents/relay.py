"""
Relay between client connections and agent runtime queries.

Runtime messages are translated into the compact frames the frontend
understands. ``ChatRelay`` runs one turn at a time per session and keeps
the session's context summary current from the tools the agent calls.
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Literal, Optional

from loguru import logger

from src.agents.runtime import AgentQuery, AgentRuntime, QueryRequest
from src.sessions.context import extract_session_context
from src.sessions.manager import Session, SessionManager

Channel = Literal["chat", "live"]
SendFrame = Callable[[dict[str, Any]], Awaitable[None]]
# (message, session_id, resume, section_context) -> request
RequestBuilder = Callable[[str, str, Optional[str], Optional[str]], QueryRequest]

BUSY_MESSAGES = {
    "chat": "Still processing the previous message. Please wait.",
    "live": "Still processing. Please wait.",
}


def _content_blocks(msg: dict[str, Any]) -> list[dict[str, Any]]:
    content = (msg.get("message") or {}).get("content") or []
    return [b for b in content if isinstance(b, dict)]


def assistant_text(msg: dict[str, Any]) -> str:
    return "\n".join(
        str(b.get("text", "")) for b in _content_blocks(msg) if b.get("type") == "text"
    )


def tool_uses(msg: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {"name": b.get("name"), "input": b.get("input"), "id": b.get("id")}
        for b in _content_blocks(msg)
        if b.get("type") == "tool_use"
    ]


def translate_message(msg: dict[str, Any], channel: Channel = "chat") -> Optional[dict[str, Any]]:
    """
    Map a runtime message to a client frame.

    Returns None for messages the client does not need to see.
    """
    kind = msg.get("type")

    if kind == "assistant":
        if msg.get("error"):
            return {"type": "error", "error": f"API error: {msg['error']}"}
        text = assistant_text(msg)
        if channel == "live":
            if not text.strip():
                return None
            return {"type": "assistant", "text": text, "sessionId": msg.get("session_id")}
        return {
            "type": "assistant",
            "text": text,
            "toolUses": tool_uses(msg),
            "sessionId": msg.get("session_id"),
        }

    if kind == "result":
        frame: dict[str, Any] = {"type": "result", "subtype": msg.get("subtype")}
        if channel == "chat":
            frame.update(
                costUsd=msg.get("total_cost_usd"),
                numTurns=msg.get("num_turns"),
                sessionId=msg.get("session_id"),
            )
        if msg.get("subtype") == "success":
            frame["result"] = msg.get("result")
        else:
            frame["errors"] = msg.get("errors")
        return frame

    if channel == "live":
        return None

    if kind == "system" and msg.get("subtype") == "init":
        return {
            "type": "system",
            "subtype": "init",
            "tools": msg.get("tools"),
            "model": msg.get("model"),
            "skills": msg.get("skills"),
            "agents": msg.get("agents"),
        }

    if kind == "tool_progress":
        return {
            "type": "tool_progress",
            "toolName": msg.get("tool_name"),
            "toolUseId": msg.get("tool_use_id"),
            "elapsed": msg.get("elapsed_time_seconds"),
        }

    return None


class ChatRelay:
    """Runs agent turns for one connected session and forwards frames to it."""

    def __init__(
        self,
        session: Session,
        manager: SessionManager,
        runtime: AgentRuntime,
        send: SendFrame,
        build_request: RequestBuilder,
        channel: Channel = "chat",
    ):
        self.session = session
        self.manager = manager
        self.runtime = runtime
        self.send = send
        self.build_request = build_request
        self.channel = channel
        self._turn: object | None = None

    async def handle_raw(self, raw: str | bytes) -> None:
        """Handle one incoming client frame."""
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            await self.send({"type": "error", "error": "Invalid JSON"})
            return

        if not isinstance(data, dict) or data.get("type") != "message" or not data.get("message"):
            return

        section_context = data.get("sectionContext") if self.channel == "live" else None
        await self.handle_message(str(data["message"]), section_context)

    async def handle_message(self, message: str, section_context: str | None = None) -> None:
        session = self.session
        if session.processing:
            await self.send({"type": "error", "error": BUSY_MESSAGES[self.channel]})
            return

        session.processing = True
        turn = self._turn = object()
        self.manager.touch(session.id)
        try:
            previous = session.query
            if previous is not None:
                try:
                    await previous.close()
                except Exception as e:
                    logger.debug(f"Previous query already finished: {e}")

            resume = session.id if previous is not None else None
            request = self.build_request(message, session.id, resume, section_context)
            query = await self.runtime.open_query(request)
            self.manager.set_query(session.id, query)

            async for msg in query:
                await self._forward(msg, turn)
        except Exception as e:
            logger.error(f"Error in {self.channel} session {session.id}: {e}")
            await self.send({"type": "error", "error": str(e) or type(e).__name__})
        finally:
            # A follow-up turn may already own the flag once our result went out
            if self._turn is turn:
                session.processing = False

    async def _forward(self, msg: dict[str, Any], turn: object) -> None:
        if msg.get("type") == "result" and self._turn is turn:
            # Cleared before the frame goes out so the client can follow up immediately
            self.session.processing = False
        if msg.get("session_id"):
            self.session.agent_session_id = msg["session_id"]

        frame = translate_message(msg, self.channel)
        if frame is not None:
            await self.send(frame)

        if self.channel == "chat" and msg.get("type") == "assistant" and not msg.get("error"):
            uses = tool_uses(msg)
            if uses:
                updated = extract_session_context(uses, self.session.context)
                if updated != self.session.context:
                    self.session.context = updated
                    await self.send({"type": "context", "context": updated.to_dict()})


async def collect_assessment_reply(query: AgentQuery) -> dict[str, Any]:
    """Drain a one-shot assessment query into ``{messages, result}``."""
    messages: list[dict[str, Any]] = []
    result: dict[str, Any] | None = None
    try:
        async for msg in query:
            if msg.get("type") == "assistant":
                messages.append({"type": "assistant", "text": assistant_text(msg)})
            elif msg.get("type") == "result" and result is None:
                result = msg
    finally:
        await query.close()
    return {"messages": messages, "result": result}
