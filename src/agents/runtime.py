"""
Agent runtime client.

The LLM loop runs in an external agent runtime. This module builds query
requests for the three conversation kinds (educator chat, learner
assessment, live teaching companion) and streams the runtime's messages
back as dicts.

Wire format: ``POST {agent_runtime_url}/v1/query`` with the request JSON,
answered by newline-delimited JSON messages (``assistant``, ``result``,
``system``, ``tool_progress``...).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Optional, Protocol

import httpx
from loguru import logger

from src.agents.definitions import (
    ASSESSMENT_TOOLS,
    EDUCATOR_SYSTEM_PROMPT,
    EDUCATOR_TOOLS,
    AgentDefinition,
)
from src.core.errors import AgentRuntimeError
from src.lessons.parser import ParsedLesson
from src.lessons.store import load_lesson
from src.store.assessments import read_assessment

QUERY_ENDPOINT = "/v1/query"
LIVE_TOOLS = ["Read", "Glob"]


@dataclass
class QueryRequest:
    prompt: str
    model: str
    system_prompt: str
    allowed_tools: list[str] = field(default_factory=list)
    agents: dict[str, AgentDefinition] = field(default_factory=dict)
    session_id: Optional[str] = None
    resume: Optional[str] = None
    persist_session: bool = True

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "prompt": self.prompt,
            "model": self.model,
            "systemPrompt": self.system_prompt,
            "allowedTools": list(self.allowed_tools),
            "agents": {name: agent.to_dict() for name, agent in self.agents.items()},
            "persistSession": self.persist_session,
        }
        # resume and a fresh session id are mutually exclusive
        if self.resume:
            payload["resume"] = self.resume
        elif self.session_id:
            payload["sessionId"] = self.session_id
        return payload


class AgentQuery(Protocol):
    """A running query: an async stream of runtime messages that can be cancelled."""

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]: ...

    async def close(self) -> None: ...


class AgentRuntime(Protocol):
    async def open_query(self, request: QueryRequest) -> AgentQuery: ...

    async def close(self) -> None: ...


class HttpAgentQuery:
    """One streamed POST to the runtime."""

    def __init__(self, client: httpx.AsyncClient, request: QueryRequest):
        self._client = client
        self._request = request
        self._response: httpx.Response | None = None
        self._closed = False

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._messages()

    async def _messages(self) -> AsyncIterator[dict[str, Any]]:
        try:
            async with self._client.stream(
                "POST", QUERY_ENDPOINT, json=self._request.to_payload()
            ) as response:
                self._response = response
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise AgentRuntimeError(
                        f"Agent runtime returned {response.status_code}: {body[:200]}"
                    )
                async for line in response.aiter_lines():
                    if self._closed:
                        break
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        message = json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning(f"Skipping malformed runtime line: {line[:80]}")
                        continue
                    if isinstance(message, dict):
                        yield message
        except (httpx.HTTPError, httpx.StreamError) as e:
            if self._closed:
                return
            logger.error(f"Agent runtime request failed: {e}")
            raise AgentRuntimeError(f"Agent runtime unavailable: {e}") from e
        finally:
            self._response = None

    async def close(self) -> None:
        self._closed = True
        if self._response is not None:
            await self._response.aclose()


class HttpAgentRuntime:
    """
    httpx client for the external agent runtime.

    Usage:
        runtime = HttpAgentRuntime(settings.agent_runtime_url, settings.agent_runtime_api_key)
        query = await runtime.open_query(request)
        async for message in query:
            ...
        await runtime.close()
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def open_query(self, request: QueryRequest) -> HttpAgentQuery:
        logger.debug(f"Opening agent query (model={request.model}, resume={request.resume})")
        return HttpAgentQuery(self._client, request)

    async def close(self) -> None:
        await self._client.aclose()


# =============================================================================
# Request builders
# =============================================================================


def build_educator_request(
    message: str,
    agents: dict[str, AgentDefinition],
    model: str = "opus",
    session_id: str | None = None,
    resume: str | None = None,
) -> QueryRequest:
    return QueryRequest(
        prompt=message,
        model=model,
        system_prompt=EDUCATOR_SYSTEM_PROMPT,
        allowed_tools=list(EDUCATOR_TOOLS),
        agents=agents,
        session_id=session_id,
        resume=resume,
        persist_session=True,
    )


def build_assessment_request(
    data_dir: Path | str,
    code: str,
    learner_name: str,
    message: str,
    agents: dict[str, AgentDefinition],
    model: str = "sonnet",
) -> QueryRequest:
    """
    One-shot assessment turn for a learner.

    Raises:
        RecordNotFoundError: if the assessment session does not exist
    """
    session = read_assessment(data_dir, code)
    prompt = (
        f'You are conducting a skill assessment for learner "{learner_name}" '
        f"as part of assessment session {session.code}.\n\n"
        f"Assessment context:\n{session.raw}\n\n"
        "Use the assess-skills and reason-dependencies skills for methodology. "
        "Query the skill graph to understand dependencies. Update the learner's "
        "profile with results using the assess_learner tool.\n\n"
        f"The learner's message: {message}"
    )
    return QueryRequest(
        prompt=prompt,
        model=model,
        system_prompt=prompt,
        allowed_tools=list(ASSESSMENT_TOOLS),
        agents=agents,
        persist_session=False,
    )


def _lesson_outline(lesson: ParsedLesson) -> str:
    meta = lesson.meta
    lines = [
        f"Lesson: {meta.title}",
        f"Group: {meta.group or 'unknown'} | Domain: {meta.domain or 'unknown'} | Duration: {meta.duration} min",
    ]
    if meta.one_thing:
        lines.append(f"The one thing: {meta.one_thing}")
    if lesson.objectives:
        lines.append("Objectives:")
        lines.extend(f"{i}. {o}" for i, o in enumerate(lesson.objectives, 1))
    if lesson.sections:
        lines.append("Timeline:")
        for section in lesson.sections:
            phase = f" ({section.phase})" if section.phase else ""
            lines.append(
                f"- [{section.start_min}-{section.end_min} min] {section.title}{phase}"
            )
    return "\n".join(lines)


def build_live_companion_request(
    data_dir: Path | str,
    lesson_id: str,
    message: str,
    agents: dict[str, AgentDefinition],
    model: str = "sonnet",
    session_id: str | None = None,
    resume: str | None = None,
    section_context: str | None = None,
) -> QueryRequest:
    """Companion turn during a live lesson; the lesson plan is inlined into the system prompt."""
    parts = [
        "You are a live teaching companion. The educator is teaching right now and "
        "glances at you between activities. Answer in at most three short sentences, "
        "lead with the action to take, and never restructure the whole lesson."
    ]
    if lesson_id:
        lesson = load_lesson(data_dir, lesson_id)
        parts.append(_lesson_outline(lesson))
        parts.append(f"Full lesson plan:\n{lesson.full_markdown}")
    if section_context:
        parts.append(f"Current position in the lesson: {section_context}")

    return QueryRequest(
        prompt=message,
        model=model,
        system_prompt="\n\n".join(parts),
        allowed_tools=list(LIVE_TOOLS),
        agents=agents,
        session_id=session_id,
        resume=resume,
        persist_session=True,
    )
