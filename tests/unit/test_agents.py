"""
Unit tests for agent definitions, runtime requests and the chat relay.

The runtime is exercised through httpx.MockTransport; the relay through
the fakes in tests/fakes.py.
"""

import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest
from fastapi import WebSocketDisconnect
from fastapi.websockets import WebSocketState

from src.agents.definitions import (
    BUILTIN_AGENTS,
    EDUCATOR_TOOLS,
    apply_model_overrides,
    load_agent_definitions,
    parse_agent_file,
)
from src.agents.relay import ChatRelay, collect_assessment_reply, translate_message
from src.agents.runtime import (
    QUERY_ENDPOINT,
    HttpAgentRuntime,
    QueryRequest,
    build_assessment_request,
    build_educator_request,
    build_live_companion_request,
)
from src.api.routers.ws_router import _serve
from src.core.errors import AgentRuntimeError, RecordNotFoundError
from src.sessions.manager import SessionManager
from tests.fakes import FakeQuery, FakeRuntime, HeldQuery, ScriptedRuntime, default_reply

AGENT_FILE = """---
name: roster-agent
description: >
  Builds group
  rosters
model: haiku
tools: Read, Glob, mcp__pedagogy__load_roster
---
You are a roster specialist.
"""


class TestAgentDefinitions:
    def test_builtins(self):
        assert set(BUILTIN_AGENTS) == {"assessment-agent", "lesson-agent", "curriculum-agent"}
        assert "mcp__pedagogy__*" in EDUCATOR_TOOLS

    def test_parse_file(self):
        agent = parse_agent_file(AGENT_FILE)
        assert agent.name == "roster-agent"
        assert agent.description == "Builds group rosters"
        assert agent.model == "haiku"
        assert agent.tools == ["Read", "Glob", "mcp__pedagogy__load_roster"]
        assert agent.prompt == "You are a roster specialist."

    def test_parse_tool_list_and_default_description(self):
        agent = parse_agent_file("---\nname: x-agent\ntools:\n  - Read\n---\nBody")
        assert agent.tools == ["Read"]
        assert agent.description == "Agent: x-agent"
        assert agent.model is None

    @pytest.mark.parametrize(
        "content",
        ["no frontmatter", "---\ndescription: nameless\n---\nBody", "---\nname: [unclosed\n---\nBody"],
    )
    def test_parse_rejects(self, content):
        assert parse_agent_file(content) is None

    def test_to_dict_drops_name_and_none(self):
        agent = parse_agent_file("---\nname: x-agent\n---\nBody")
        assert agent.to_dict() == {"description": "Agent: x-agent", "prompt": "Body"}

    def test_load_directory_overrides_builtin(self, tmp_path):
        (tmp_path / "roster.md").write_text(AGENT_FILE, encoding="utf-8")
        (tmp_path / "lesson.md").write_text("---\nname: lesson-agent\n---\nCustom lesson agent", encoding="utf-8")
        (tmp_path / "broken.md").write_text("nothing here", encoding="utf-8")

        agents = load_agent_definitions(tmp_path)
        assert set(agents) == {"assessment-agent", "lesson-agent", "curriculum-agent", "roster-agent"}
        assert agents["lesson-agent"].prompt == "Custom lesson agent"

    def test_missing_directory(self, tmp_path):
        assert load_agent_definitions(tmp_path / "absent") == BUILTIN_AGENTS
        assert load_agent_definitions(None) == BUILTIN_AGENTS

    def test_model_overrides(self):
        agents = apply_model_overrides(BUILTIN_AGENTS, {"lesson-agent": "sonnet", "assessment-agent": ""})
        assert agents["lesson-agent"].model == "sonnet"
        assert agents["assessment-agent"].model == BUILTIN_AGENTS["assessment-agent"].model
        assert BUILTIN_AGENTS["lesson-agent"].model == "opus"


class TestRequestBuilders:
    def test_payload_prefers_resume(self):
        request = build_educator_request("hi", {}, session_id="s-1", resume="s-1")
        payload = request.to_payload()
        assert payload["resume"] == "s-1"
        assert "sessionId" not in payload
        assert payload["persistSession"] is True

        fresh = build_educator_request("hi", {}, session_id="s-2").to_payload()
        assert fresh["sessionId"] == "s-2"
        assert "resume" not in fresh

    def test_payload_serializes_agents(self):
        payload = build_educator_request("hi", BUILTIN_AGENTS).to_payload()
        assert payload["agents"]["lesson-agent"]["model"] == "opus"
        assert "name" not in payload["agents"]["lesson-agent"]

    def test_assessment_request(self, data_dir):
        request = build_assessment_request(data_dir, "ABCD1234", "Ben", "I know variables", {})
        assert 'learner "Ben"' in request.prompt
        assert "# Assessment Session: ABCD1234" in request.prompt
        assert request.prompt.endswith("The learner's message: I know variables")
        assert request.system_prompt == request.prompt
        assert request.persist_session is False
        assert "mcp__pedagogy__assess_learner" in request.allowed_tools

    def test_assessment_request_unknown_code(self, data_dir):
        with pytest.raises(RecordNotFoundError):
            build_assessment_request(data_dir, "ZZZZ0000", "Ben", "hi", {})

    def test_live_request_with_lesson(self, data_dir):
        request = build_live_companion_request(
            data_dir, "loops-into-functions", "running late", {}, section_context="section-2"
        )
        assert "Lesson: Loops into Functions" in request.system_prompt
        assert "- [10-40 min] Pair programming (PRACTICE)" in request.system_prompt
        assert "Current position in the lesson: section-2" in request.system_prompt
        assert request.allowed_tools == ["Read", "Glob"]

    def test_live_request_without_lesson(self, data_dir):
        request = build_live_companion_request(data_dir, "", "hello", {})
        assert "Lesson:" not in request.system_prompt

    def test_live_request_unknown_lesson(self, data_dir):
        with pytest.raises(RecordNotFoundError):
            build_live_companion_request(data_dir, "missing", "hello", {})


class TestHttpAgentRuntime:
    @pytest.mark.asyncio
    async def test_streams_ndjson(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            lines = [json.dumps(m) for m in default_reply()]
            return httpx.Response(200, content="\n".join(lines[:1] + ["not json", ""] + lines[1:]))

        runtime = HttpAgentRuntime("http://runtime", api_key="secret", transport=httpx.MockTransport(handler))
        query = await runtime.open_query(QueryRequest(prompt="hi", model="opus", system_prompt="sys"))
        messages = [m async for m in query]
        await runtime.close()

        assert [m["type"] for m in messages] == ["system", "assistant", "result"]
        assert seen["path"] == QUERY_ENDPOINT
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["systemPrompt"] == "sys"

    @pytest.mark.asyncio
    async def test_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503, text="overloaded"))
        runtime = HttpAgentRuntime("http://runtime", transport=transport)
        query = await runtime.open_query(QueryRequest(prompt="hi", model="opus", system_prompt=""))
        with pytest.raises(AgentRuntimeError, match="Agent runtime returned 503: overloaded"):
            [m async for m in query]
        await runtime.close()

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        runtime = HttpAgentRuntime("http://runtime", transport=httpx.MockTransport(handler))
        query = await runtime.open_query(QueryRequest(prompt="hi", model="opus", system_prompt=""))
        with pytest.raises(AgentRuntimeError, match="Agent runtime unavailable"):
            [m async for m in query]
        await runtime.close()


class TestTranslateMessage:
    def test_chat_assistant(self):
        frame = translate_message(default_reply()[1], "chat")
        assert frame["type"] == "assistant"
        assert frame["text"] == "Let's start with loops."
        assert frame["toolUses"][0]["name"] == "mcp__pedagogy__query_group"
        assert frame["sessionId"] == "agent-session-1"

    def test_live_assistant_drops_empty_text(self):
        msg = {"type": "assistant", "message": {"content": [{"type": "tool_use", "name": "Read", "input": {}}]}}
        assert translate_message(msg, "live") is None
        frame = translate_message(default_reply()[1], "live")
        assert set(frame) == {"type", "text", "sessionId"}

    def test_assistant_error(self):
        assert translate_message({"type": "assistant", "error": "rate_limit"}) == {
            "type": "error",
            "error": "API error: rate_limit",
        }

    def test_result(self):
        chat = translate_message(default_reply()[2], "chat")
        assert chat == {
            "type": "result",
            "subtype": "success",
            "costUsd": 0.01,
            "numTurns": 1,
            "sessionId": "agent-session-1",
            "result": "Let's start with loops.",
        }
        live = translate_message({"type": "result", "subtype": "error_max_turns", "errors": ["x"]}, "live")
        assert live == {"type": "result", "subtype": "error_max_turns", "errors": ["x"]}

    def test_system_and_progress(self):
        assert translate_message(default_reply()[0], "chat")["model"] == "opus"
        assert translate_message(default_reply()[0], "live") is None
        progress = translate_message(
            {"type": "tool_progress", "tool_name": "Read", "tool_use_id": "t1", "elapsed_time_seconds": 2}
        )
        assert progress == {"type": "tool_progress", "toolName": "Read", "toolUseId": "t1", "elapsed": 2}

    def test_unknown(self):
        assert translate_message({"type": "stream_event"}) is None


def make_relay(runtime, channel="chat"):
    manager = SessionManager()
    session = manager.create()
    frames = []
    requests = []

    async def send(frame):
        frames.append(frame)

    def build(message, session_id, resume, section):
        requests.append((message, session_id, resume, section))
        return build_educator_request(message, {}, session_id=session_id, resume=resume)

    relay = ChatRelay(session, manager, runtime, send, build, channel=channel)
    return relay, session, frames, requests


class TestChatRelay:
    @pytest.mark.asyncio
    async def test_turn_forwards_frames_and_context(self):
        runtime = FakeRuntime()
        relay, session, frames, requests = make_relay(runtime)

        await relay.handle_raw(json.dumps({"type": "message", "message": "plan a lesson"}))

        assert [f["type"] for f in frames] == ["system", "assistant", "context", "result"]
        assert frames[2]["context"]["groupName"] == "tuesday-cohort"
        assert session.context.domain == "python-basics"
        assert session.agent_session_id == "agent-session-1"
        assert not session.processing
        assert requests == [("plan a lesson", session.id, None, None)]

    @pytest.mark.asyncio
    async def test_second_turn_resumes_and_closes_previous(self):
        runtime = FakeRuntime()
        relay, session, frames, requests = make_relay(runtime)
        await relay.handle_message("first")
        await relay.handle_message("second")

        assert runtime.queries[0].closed
        assert requests[1][2] == session.id
        # Context unchanged on the second turn, so no second context frame
        assert [f["type"] for f in frames].count("context") == 1

    @pytest.mark.asyncio
    async def test_overlapping_turn_keeps_busy_flag(self):
        reply = default_reply()
        # Turn one sends its result, then keeps streaming until closed;
        # turn two holds back its result until released
        first_query = HeldQuery(reply)
        second_query = HeldQuery(reply[:-1], reply[-1:])
        relay, session, frames, _ = make_relay(ScriptedRuntime([first_query, second_query]))

        first = asyncio.create_task(relay.handle_message("first"))
        for _ in range(100):
            if any(f["type"] == "result" for f in frames):
                break
            await asyncio.sleep(0)
        assert not session.processing

        second = asyncio.create_task(relay.handle_message("second"))
        await asyncio.wait_for(first, timeout=1)
        assert first_query.closed
        assert session.processing

        await relay.handle_message("third")
        assert frames[-1] == {"type": "error", "error": "Still processing the previous message. Please wait."}

        second_query.release.set()
        await asyncio.wait_for(second, timeout=1)
        assert frames[-1]["type"] == "result"
        assert not session.processing

    @pytest.mark.asyncio
    async def test_busy(self):
        relay, session, frames, _ = make_relay(FakeRuntime(), channel="live")
        session.processing = True
        await relay.handle_message("again")
        assert frames == [{"type": "error", "error": "Still processing. Please wait."}]

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        relay, _, frames, _ = make_relay(FakeRuntime())
        await relay.handle_raw("{nope")
        assert frames == [{"type": "error", "error": "Invalid JSON"}]

    @pytest.mark.asyncio
    async def test_ignores_other_frames(self):
        runtime = FakeRuntime()
        relay, _, frames, _ = make_relay(runtime)
        await relay.handle_raw(json.dumps({"type": "ping"}))
        await relay.handle_raw(json.dumps({"type": "message", "message": ""}))
        assert frames == []
        assert runtime.requests == []

    @pytest.mark.asyncio
    async def test_section_context_only_on_live(self):
        relay, _, _, requests = make_relay(FakeRuntime(), channel="live")
        await relay.handle_raw(json.dumps({"type": "message", "message": "hi", "sectionContext": "section-1"}))
        assert requests[0][3] == "section-1"

        chat, _, _, chat_requests = make_relay(FakeRuntime())
        await chat.handle_raw(json.dumps({"type": "message", "message": "hi", "sectionContext": "section-1"}))
        assert chat_requests[0][3] is None

    @pytest.mark.asyncio
    async def test_runtime_error_reported(self):
        runtime = FakeRuntime(messages=[], error=AgentRuntimeError("Agent runtime unavailable: refused"))
        relay, session, frames, _ = make_relay(runtime)
        await relay.handle_message("hello")
        assert frames == [{"type": "error", "error": "Agent runtime unavailable: refused"}]
        assert not session.processing


class TestCollectAssessmentReply:
    @pytest.mark.asyncio
    async def test_collects_and_closes(self):
        query = FakeQuery(default_reply("What is a variable?"))
        reply = await collect_assessment_reply(query)
        assert reply["messages"] == [{"type": "assistant", "text": "What is a variable?"}]
        assert reply["result"]["subtype"] == "success"
        assert query.closed

    @pytest.mark.asyncio
    async def test_closes_on_error(self):
        query = FakeQuery([], error=AgentRuntimeError("boom"))
        with pytest.raises(AgentRuntimeError):
            await collect_assessment_reply(query)
        assert query.closed


class FakeSocket:
    """The parts of a Starlette WebSocket the serve loop touches."""

    def __init__(self, manager, runtime):
        self.app = SimpleNamespace(state=SimpleNamespace(session_manager=manager, runtime=runtime))
        self.application_state = WebSocketState.CONNECTED
        self.incoming = asyncio.Queue()
        self.sent = []

    async def send_json(self, frame):
        self.sent.append(frame)

    async def receive_text(self):
        raw = await self.incoming.get()
        if raw is None:
            raise WebSocketDisconnect(code=1000)
        return raw


class TestSocketTeardown:
    @pytest.mark.asyncio
    async def test_disconnect_mid_turn_waits_for_turn_before_removing_session(self):
        events = []
        query = HeldQuery(default_reply()[:1], events=events)
        manager = SessionManager()
        socket = FakeSocket(manager, ScriptedRuntime([query]))

        def build(message, session_id, resume, section):
            return build_educator_request(message, {}, session_id=session_id, resume=resume)

        serving = asyncio.create_task(_serve(socket, "chat", build))
        await socket.incoming.put(json.dumps({"type": "message", "message": "hello"}))
        for _ in range(100):
            if any(f["type"] == "system" for f in socket.sent):
                break
            await asyncio.sleep(0)

        await socket.incoming.put(None)
        await asyncio.wait_for(serving, timeout=1)

        assert socket.sent[0]["type"] == "session"
        assert events == ["stream ended", "closed"]
        assert len(manager) == 0
