"""
Session context extraction.

Reads the inputs of pedagogy tool calls made by the agent and accumulates
the group, domain, constraints, learners and skills the educator is working
with, so the UI can show a running summary of the conversation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Iterable

TOOL_PREFIX = "mcp__pedagogy__"


@dataclass
class SessionContext:
    group_name: str | None = None
    domain: str | None = None
    constraints: list[str] = field(default_factory=list)
    learner_names: list[str] = field(default_factory=list)
    skills_discussed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "groupName": self.group_name,
            "domain": self.domain,
            "constraints": list(self.constraints),
            "learnerNames": list(self.learner_names),
            "skillsDiscussed": list(self.skills_discussed),
        }


def _merge(existing: list[str], new: Iterable[str]) -> list[str]:
    merged = list(existing)
    for item in new:
        if item not in merged:
            merged.append(item)
    return merged


def _member_names(members: list[Any]) -> list[str]:
    names = []
    for member in members:
        if isinstance(member, str):
            names.append(member)
        elif isinstance(member, dict) and isinstance(member.get("name"), str):
            names.append(member["name"])
    return names


def _take_group_and_domain(ctx: SessionContext, data: dict[str, Any]) -> None:
    if isinstance(data.get("groupName"), str):
        ctx.group_name = data["groupName"]
    if isinstance(data.get("domain"), str):
        ctx.domain = data["domain"]


def extract_session_context(
    tool_uses: Iterable[dict[str, Any]],
    current: SessionContext,
) -> SessionContext:
    """
    Fold a batch of tool uses into a new context.

    Args:
        tool_uses: ``{"name": ..., "input": {...}}`` blocks from an assistant message
        current: Context accumulated so far (left untouched)

    Returns:
        Updated copy of the context
    """
    ctx = replace(
        current,
        constraints=list(current.constraints),
        learner_names=list(current.learner_names),
        skills_discussed=list(current.skills_discussed),
    )

    for tool in tool_uses:
        name = str(tool.get("name", ""))
        data = tool.get("input") or {}
        if not name.startswith(TOOL_PREFIX) or not isinstance(data, dict):
            continue
        action = name[len(TOOL_PREFIX):]

        if action == "load_roster":
            _take_group_and_domain(ctx, data)
            if isinstance(data.get("members"), list):
                ctx.learner_names = _merge(ctx.learner_names, _member_names(data["members"]))

        elif action == "query_skill_graph":
            if isinstance(data.get("domain"), str):
                ctx.domain = data["domain"]
            if isinstance(data.get("skillId"), str):
                ctx.skills_discussed = _merge(ctx.skills_discussed, [data["skillId"]])
            if isinstance(data.get("skillIds"), list):
                ids = [s for s in data["skillIds"] if isinstance(s, str)]
                ctx.skills_discussed = _merge(ctx.skills_discussed, ids)

        elif action in ("query_group", "generate_assessment_link", "check_assessment_status"):
            _take_group_and_domain(ctx, data)

        elif action == "assess_learner":
            if isinstance(data.get("learnerId"), str):
                ctx.learner_names = _merge(ctx.learner_names, [data["learnerId"]])
            if isinstance(data.get("domain"), str):
                ctx.domain = data["domain"]
            if isinstance(data.get("skillId"), str):
                ctx.skills_discussed = _merge(ctx.skills_discussed, [data["skillId"]])

        elif action in ("audit_prerequisites", "compose_lesson_plan"):
            _take_group_and_domain(ctx, data)
            duration = data.get("duration")
            # bool is an int subclass
            if isinstance(duration, (int, float)) and not isinstance(duration, bool):
                ctx.constraints = _merge(ctx.constraints, [f"{duration:g} minutes"])
            constraints = data.get("constraints")
            if isinstance(constraints, str) and constraints.strip():
                parts = [p.strip() for p in re.split(r"[,;]", constraints)]
                ctx.constraints = _merge(ctx.constraints, [p for p in parts if p])

    return ctx
