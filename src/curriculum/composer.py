"""
Curriculum composer.

Sequences the skills a group still needs across a number of sessions:

1. Build the group's skill profile from its learners.
2. Walk back from the target skills to find the teaching frontier, the
   skills the group does not yet hold (below the coverage threshold).
3. Order the frontier so prerequisites come first.
4. Pack skills into sessions (~18 minutes of teaching per skill), with a
   short review of the previous session's skills.
"""

from __future__ import annotations

import math
from collections import Counter, deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from loguru import logger

from src.core.errors import GraphValidationError, PathTraversalError, RecordNotFoundError
from src.curriculum.models import (
    CurriculumPlan,
    GroupSkillProfile,
    PlannedSession,
    PlannedSkill,
    Readiness,
    SessionAllocation,
    SkillCoverage,
)
from src.graph.analysis import critical_path_length, topological_sort
from src.store.domains import BLOOM_ORDER, SkillGraph, load_graph
from src.store.groups import read_group
from src.store.learners import LearnerProfile, read_learner
from src.store.paths import safe_path, slugify

TEACHING_SHARE = 0.65  # of a session, after opening, transitions and closing
MINUTES_PER_SKILL = 18
REVIEW_MINUTES = 5
CLOSING_MINUTES = 5
MAX_REVIEW_SKILLS = 2
DEFAULT_TARGET_LEVEL = BLOOM_ORDER["analysis"]


def skills_per_session(duration: int) -> int:
    return max(1, math.floor(duration * TEACHING_SHARE / MINUTES_PER_SKILL))


def build_group_skill_profile(
    learner_profiles: Iterable[LearnerProfile],
    known_threshold: float = 0.5,
) -> GroupSkillProfile:
    """Per-skill count, fraction and average confidence of learners holding it."""
    counts: dict[str, int] = {}
    totals: dict[str, float] = {}
    loaded = 0

    for profile in learner_profiles:
        loaded += 1
        for entry in profile.skills:
            if entry.confidence >= known_threshold:
                counts[entry.skill_id] = counts.get(entry.skill_id, 0) + 1
                totals[entry.skill_id] = totals.get(entry.skill_id, 0.0) + entry.confidence

    coverage = {
        skill_id: SkillCoverage(
            have_it=count,
            fraction=count / loaded if loaded else 0.0,
            avg_confidence=totals[skill_id] / count,
        )
        for skill_id, count in counts.items()
    }
    return GroupSkillProfile(total_learners=loaded, coverage=coverage)


def find_teaching_frontier(
    graph: SkillGraph,
    targets: Iterable[str],
    profile: GroupSkillProfile,
    coverage_threshold: float = 0.7,
) -> list[str]:
    """Skills between the group's current level and the targets, in discovery order."""
    needed: dict[str, None] = {}

    for target in targets:
        queue = deque([target])
        visited = {target}
        while queue:
            current = queue.popleft()
            if profile.fraction(current) >= coverage_threshold:
                continue  # group already has it, no need to go further back
            needed[current] = None
            for edge in graph.prerequisite_edges(current):
                if edge.source not in visited:
                    visited.add(edge.source)
                    queue.append(edge.source)

    return list(needed)


def _bloom_focus(graph: SkillGraph, skill_ids: list[str]) -> str:
    levels = Counter(
        (graph.skill(s).bloom_level if graph.skill(s) else "knowledge") for s in skill_ids
    )
    most_common = levels.most_common(1)
    return most_common[0][0] if most_common else "application"


def distribute_skills(
    graph: SkillGraph,
    sorted_skills: list[str],
    n_sessions: int,
    duration: int,
) -> list[SessionAllocation]:
    """Pack ordered skills into sessions; the last session takes the remainder."""
    per_session = skills_per_session(duration)
    sessions: list[SessionAllocation] = []
    index = 0

    for number in range(n_sessions):
        if index >= len(sorted_skills):
            break
        is_last = number == n_sessions - 1
        take = len(sorted_skills) - index if is_last else per_session
        chunk = sorted_skills[index:index + take]
        index += len(chunk)

        review = sessions[-1].skills[:MAX_REVIEW_SKILLS] if sessions else []
        sessions.append(
            SessionAllocation(skills=chunk, bloom_focus=_bloom_focus(graph, chunk), review_skills=review)
        )

    # More sessions than content: the remainder become review sessions
    while len(sessions) < n_sessions:
        previous = sessions[-1].skills if sessions else []
        sessions.append(SessionAllocation(skills=[], bloom_focus="application", review_skills=previous[:3]))

    return sessions


def skill_readiness(
    skill_id: str,
    graph: SkillGraph,
    profile: GroupSkillProfile,
    taught: set[str],
    coverage_threshold: float = 0.7,
) -> Readiness:
    """Whether the group holds (or has been taught) a skill's prerequisites."""
    edges = graph.prerequisite_edges(skill_id)
    if not edges:
        return "ready"

    met = sum(
        1 for e in edges
        if profile.fraction(e.source) >= coverage_threshold or e.source in taught
    )
    if met == len(edges):
        return "ready"
    return "partial" if met else "blocked"


def _plan_sessions(
    graph: SkillGraph,
    allocations: list[SessionAllocation],
    profile: GroupSkillProfile,
    coverage_threshold: float,
) -> list[PlannedSession]:
    taught = {s for s, c in profile.coverage.items() if c.fraction >= coverage_threshold}
    planned = []

    for number, allocation in enumerate(allocations, start=1):
        skills = [
            PlannedSkill(
                id=skill_id,
                label=graph.label_for(skill_id),
                bloom_level=graph.skill(skill_id).bloom_level if graph.skill(skill_id) else "unknown",
                readiness=skill_readiness(skill_id, graph, profile, taught, coverage_threshold),
            )
            for skill_id in allocation.skills
        ]
        taught.update(allocation.skills)

        planned.append(
            PlannedSession(
                session=number,
                bloom_focus=allocation.bloom_focus,
                skills=skills,
                review_skills=[{"id": s, "label": graph.label_for(s)} for s in allocation.review_skills],
                milestone=(
                    f"Students can {skills[-1].label.lower()}"
                    if skills
                    else "Review and consolidate skills from previous sessions"
                ),
            )
        )

    return planned


def _session_readiness(session: PlannedSession) -> str:
    if all(s.readiness == "ready" for s in session.skills):
        return "Ready"
    if any(s.readiness == "blocked" for s in session.skills):
        return "Blocked"
    return "Partial"


READINESS_LABELS = {
    "ready": "Ready",
    "partial": "Some prerequisites missing",
    "blocked": "Prerequisites not yet covered",
}


def render_curriculum(
    title: str,
    domain: str,
    group: str,
    n_sessions: int,
    duration: int,
    objectives: list[str],
    constraints: str | None,
    skills_to_teach: list[str],
    critical_path: int,
    min_sessions: int,
    sessions: list[PlannedSession],
    created: str,
) -> str:
    lines = [
        f"# Curriculum: {title}",
        "",
        "| Field | Value |",
        "|---|---|",
        f"| **Group** | {group} |",
        f"| **Domain** | {domain} |",
        f"| **Sessions** | {n_sessions} |",
        f"| **Duration per session** | {duration} minutes |",
        f"| **Total teaching time** | {n_sessions * duration} minutes |",
        f"| **Created** | {created} |",
        "| **Status** | draft |",
        "",
        "## Overview",
        "",
        "### Learning Objectives",
        *[f"- {o}" for o in objectives],
        "",
    ]
    if constraints:
        lines += ["### Constraints", constraints, ""]

    lines += [
        "### Analysis",
        f"- **Skills to teach:** {len(skills_to_teach)}",
        f"- **Critical path length:** {critical_path} skills deep",
        f"- **Minimum sessions needed:** {min_sessions}",
        f"- **Sessions allocated:** {n_sessions}",
    ]
    if n_sessions < min_sessions:
        lines.append(
            f"- **Warning:** {n_sessions} sessions may not be enough. Consider reducing scope "
            f"or adding {min_sessions - n_sessions} more sessions."
        )
    elif n_sessions > min_sessions + 2:
        lines.append("- **Note:** Extra sessions available for deeper practice, review, or extension activities.")
    lines.append("")

    lines += [
        "## Progression Map",
        "",
        "| Session | Bloom's Focus | Skills | Readiness |",
        "|---|---|---|---|",
    ]
    for session in sessions:
        names = ", ".join(s.label for s in session.skills) or "Review & consolidation"
        review = f" (+{len(session.review_skills)} review)" if session.review_skills else ""
        lines.append(
            f"| Session {session.session} | {session.bloom_focus} | {names}{review} | {_session_readiness(session)} |"
        )
    lines += ["", "## Session Plans", ""]

    for session in sessions:
        lines += [
            f"### Session {session.session}: {session.bloom_focus.capitalize()}-Level Focus",
            "",
            f"**Duration:** {duration} minutes",
            f"**Bloom's focus:** {session.bloom_focus}",
            "",
        ]
        if session.review_skills:
            lines.append("**Opening review (5 min):** Review from previous session:")
            lines += [f"- {r['label']}" for r in session.review_skills]
            lines.append("")

        if session.skills:
            lines += ["**Target skills:**", "", "| Skill | Bloom's Level | Readiness |", "|---|---|---|"]
            lines += [f"| {s.label} | {s.bloom_level} | {READINESS_LABELS[s.readiness]} |" for s in session.skills]
            lines.append("")
        else:
            lines += ["**Focus:** Review and consolidation of previously taught skills.", ""]

        lines += [f"**Milestone:** {session.milestone}", ""]

        review_time = REVIEW_MINUTES if session.review_skills else 0
        teaching_time = duration - review_time - CLOSING_MINUTES
        per_skill = teaching_time // len(session.skills) if session.skills else teaching_time

        lines.append("**Outline:**")
        minute = 0
        if review_time:
            lines.append(f"- [{minute}-{minute + review_time} min] Opening review, connect to previous session")
            minute += review_time
        for skill in session.skills:
            lines.append(f"- [{minute}-{minute + per_skill} min] {skill.label} ({skill.bloom_level})")
            minute += per_skill
        lines += [f"- [{minute}-{duration} min] Wrap-up, questions, preview next session", "", "---", ""]

    lines += [
        "## Adaptation Notes",
        "",
        "### If the group is ahead of schedule",
        "- Compress review segments from 5 min to 2 min",
        "- Add extension activities or move skills forward from later sessions",
        "- Increase Bloom's level depth (move from application to analysis on current skills)",
        "",
        "### If the group falls behind",
        "- Extend review segments and add scaffolding",
        "- Split complex skills across two sessions instead of one",
        "- Prioritize prerequisite skills and defer advanced topics",
        "- Consider adding a remediation session focused on the most common gaps",
        "",
        "### Compressible sessions",
    ]
    compressible = [
        s for s in sessions
        if len(s.skills) <= 2 and all(k.readiness == "ready" for k in s.skills)
    ]
    if compressible:
        lines += [f"- Session {s.session}: skills are at ready status, could be compressed" for s in compressible]
    else:
        lines.append("- No sessions are easily compressible without cutting content")
    lines.append("")

    return "\n".join(lines)


def load_group_profiles(data_dir: Path | str, group: str) -> list[LearnerProfile]:
    """Profiles of a group's listed members; members without a file are skipped."""
    _, parsed = read_group(data_dir, group)
    profiles = []
    for member in parsed.members:
        try:
            profiles.append(read_learner(data_dir, member.id).profile)
        except RecordNotFoundError:
            logger.warning(f"Group '{group}' lists {member.id} but no profile exists")
    return profiles


def compose_curriculum(
    data_dir: Path | str,
    title: str,
    domain: str,
    group: str,
    n_sessions: int,
    duration: int,
    objectives: list[str],
    target_skills: list[str] | None = None,
    constraints: str | None = None,
    content: str | None = None,
    now: datetime | None = None,
    known_threshold: float = 0.5,
    coverage_threshold: float = 0.7,
) -> CurriculumPlan:
    """
    Compose and write a multi-session curriculum for a group.

    Args:
        title: Curriculum title; its slug names the output file
        target_skills: Skills to reach; defaults to every analysis-level-or-above skill
        content: Pre-written markdown to store instead of the generated document

    Raises:
        RecordNotFoundError: Domain or group missing
        GraphValidationError: A target skill is not in the domain graph
    """
    now = now or datetime.now(timezone.utc)
    graph = load_graph(data_dir, domain)
    profile = build_group_skill_profile(load_group_profiles(data_dir, group), known_threshold)

    targets = list(target_skills or [])
    if not targets:
        targets = [s.id for s in graph.skills if BLOOM_ORDER[s.bloom_level] >= DEFAULT_TARGET_LEVEL]

    unknown = [s for s in targets if not graph.has_skill(s)]
    if unknown:
        raise GraphValidationError(
            f"Unknown skill IDs not found in {domain} graph: {', '.join(unknown)}",
            {"valid_skill_ids": [s.id for s in graph.skills]},
        )

    needed = find_teaching_frontier(graph, targets, profile, coverage_threshold)
    ordered = topological_sort(graph, needed)
    critical = critical_path_length(graph, needed)
    min_sessions = math.ceil(critical / skills_per_session(duration))

    sessions = _plan_sessions(
        graph, distribute_skills(graph, ordered, n_sessions, duration), profile, coverage_threshold
    )

    created = now.isoformat()
    markdown = content or render_curriculum(
        title, domain, group, n_sessions, duration, objectives, constraints,
        ordered, critical, min_sessions, sessions, created,
    )

    slug = slugify(title)
    if not slug:
        raise PathTraversalError(f"Invalid curriculum title: {title!r}")
    path = safe_path(data_dir, "curricula", f"{slug}.md")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(markdown, encoding="utf-8")
    logger.info(f"Composed curriculum '{slug}': {len(ordered)} skills over {n_sessions} sessions")

    return CurriculumPlan(
        title=title,
        slug=slug,
        file=path,
        domain=domain,
        group=group,
        number_of_sessions=n_sessions,
        session_duration=duration,
        objectives=objectives,
        target_skills=targets,
        skills_to_teach=ordered,
        critical_path_length=critical,
        min_sessions_recommended=min_sessions,
        sessions=sessions,
        created=created,
        constraints=constraints,
        content=markdown,
    )
