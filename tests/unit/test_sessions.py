"""
Unit tests for the session registry and session context extraction.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.sessions.context import SessionContext, extract_session_context
from src.sessions.manager import SessionManager


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class ClosingQuery:
    def __init__(self, fail=False):
        self.closed = False
        self.fail = fail

    async def close(self):
        self.closed = True
        if self.fail:
            raise RuntimeError("already finished")


def tool(action, **data):
    return {"name": f"mcp__pedagogy__{action}", "input": data}


class TestSessionContext:
    def test_load_roster(self):
        ctx = extract_session_context(
            [tool("load_roster", groupName="Tuesday Cohort", domain="python-basics", members=["Ana", {"name": "Ben"}, 3])],
            SessionContext(),
        )
        assert ctx.group_name == "Tuesday Cohort"
        assert ctx.domain == "python-basics"
        assert ctx.learner_names == ["Ana", "Ben"]

    def test_skills_deduplicated_in_order(self):
        ctx = extract_session_context(
            [
                tool("query_skill_graph", domain="python-basics", skillId="loops"),
                tool("query_skill_graph", skillIds=["functions", "loops", 7]),
                tool("assess_learner", learnerId="ana-silva-abc234", skillId="debugging"),
            ],
            SessionContext(),
        )
        assert ctx.skills_discussed == ["loops", "functions", "debugging"]
        assert ctx.learner_names == ["ana-silva-abc234"]

    def test_constraints_from_lesson_tools(self):
        ctx = extract_session_context(
            [
                tool("compose_lesson_plan", groupName="g", duration=45, constraints="no laptops; outdoor, quiet"),
                tool("audit_prerequisites", duration=45.0),
                tool("audit_prerequisites", duration=True),
            ],
            SessionContext(),
        )
        assert ctx.constraints == ["45 minutes", "no laptops", "outdoor", "quiet"]

    def test_group_tools(self):
        for action in ("query_group", "generate_assessment_link", "check_assessment_status"):
            ctx = extract_session_context([tool(action, groupName="g", domain="d")], SessionContext())
            assert (ctx.group_name, ctx.domain) == ("g", "d")

    def test_ignores_foreign_tools_and_bad_input(self):
        current = SessionContext(domain="keep")
        ctx = extract_session_context(
            [
                {"name": "Read", "input": {"domain": "other"}},
                {"name": "mcp__pedagogy__query_group", "input": "not a dict"},
            ],
            current,
        )
        assert ctx == current

    def test_does_not_mutate_current(self):
        current = SessionContext(learner_names=["Ana"])
        ctx = extract_session_context([tool("load_roster", members=["Ben"])], current)
        assert current.learner_names == ["Ana"]
        assert ctx.learner_names == ["Ana", "Ben"]

    def test_to_dict_camel_case(self):
        ctx = SessionContext(group_name="g", skills_discussed=["loops"])
        assert ctx.to_dict() == {
            "groupName": "g",
            "domain": None,
            "constraints": [],
            "learnerNames": [],
            "skillsDiscussed": ["loops"],
        }


class TestSessionManager:
    def test_create_and_get(self):
        manager = SessionManager()
        session = manager.create()
        assert manager.get(session.id) is session
        assert len(manager) == 1
        assert manager.create("fixed").id == "fixed"

    def test_touch_updates_activity(self):
        clock = FakeClock()
        manager = SessionManager(clock=clock)
        session = manager.create()
        clock.advance(minutes=5)
        manager.touch(session.id)
        assert session.last_activity - session.created_at == timedelta(minutes=5)

    def test_set_query(self):
        manager = SessionManager()
        session = manager.create()
        query = ClosingQuery()
        manager.set_query(session.id, query)
        assert session.query is query
        manager.set_query("missing", query)

    @pytest.mark.asyncio
    async def test_remove_closes_query(self):
        manager = SessionManager()
        session = manager.create()
        query = ClosingQuery(fail=True)
        manager.set_query(session.id, query)
        await manager.remove(session.id)
        assert query.closed
        assert manager.get(session.id) is None
        await manager.remove(session.id)

    @pytest.mark.asyncio
    async def test_cleanup_removes_idle_sessions(self):
        clock = FakeClock()
        manager = SessionManager(clock=clock)
        stale = manager.create()
        clock.advance(hours=3)
        fresh = manager.create()
        clock.advance(hours=1, minutes=1)

        removed = await manager.cleanup()
        assert removed == 1
        assert manager.get(stale.id) is None
        assert manager.get(fresh.id) is fresh

    @pytest.mark.asyncio
    async def test_cleanup_custom_age(self):
        clock = FakeClock()
        manager = SessionManager(clock=clock)
        manager.create()
        clock.advance(minutes=10)
        assert await manager.cleanup(timedelta(minutes=30)) == 0
        assert await manager.cleanup(timedelta(minutes=5)) == 1
