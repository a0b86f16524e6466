"""
Group-level analysis.

Aggregates learner profiles of a group against a domain graph: which skills
the group holds, where the gaps are, who could help whom, and whether the
group has the prerequisites for a lesson's target skills.
"""

from __future__ import annotations

from collections import deque
from pathlib import Path
from typing import Any

from src.store.assessments import active_sessions_for_group
from src.store.domains import SkillGraph, load_graph
from src.store.groups import read_group
from src.store.learners import NO_ASSESSED, LearnerRecord, load_group_learners

DEFAULT_THRESHOLDS = {
    "known": 0.5,
    "strong": 0.7,
    "weak_prerequisite": 0.6,
}

GAP_SHARE = 0.5
STRENGTH_COVERAGE = 0.8
STRENGTH_CONFIDENCE = 0.7
CRITICAL_COVERAGE = 0.5


def _percent(part: int, whole: int) -> str:
    return f"{round(part / whole * 100)}%" if whole else "N/A"


def _pairings(learners: list[LearnerRecord], strong: float) -> list[dict[str, str]]:
    """Pairs of learners where at least one holds a strong skill the other lacks."""
    strong_sets = [
        [skill_id for skill_id, conf in r.profile.best_confidences().items() if conf >= strong]
        for r in learners
    ]
    suggestions = []
    for i, first in enumerate(learners):
        for j in range(i + 1, len(learners)):
            second = learners[j]
            first_teaches = [s for s in strong_sets[i] if s not in strong_sets[j]]
            second_teaches = [s for s in strong_sets[j] if s not in strong_sets[i]]
            if not first_teaches and not second_teaches:
                continue
            parts = []
            if first_teaches:
                parts.append(f"{first.name} can help with: {', '.join(first_teaches[:3])}")
            if second_teaches:
                parts.append(f"{second.name} can help with: {', '.join(second_teaches[:3])}")
            suggestions.append(
                {"learner1": first.name, "learner2": second.name, "rationale": "; ".join(parts)}
            )
    return suggestions


def query_group(
    data_dir: Path | str,
    group: str,
    domain: str,
    thresholds: dict[str, float] | None = None,
) -> dict[str, Any]:
    """Skill distribution, common gaps, strengths and pairing suggestions for a group."""
    thresholds = {**DEFAULT_THRESHOLDS, **(thresholds or {})}
    graph = load_graph(data_dir, domain)
    learners = load_group_learners(data_dir, group)

    if not learners:
        return {
            "group": group,
            "domain": domain,
            "member_count": 0,
            "message": "No learner profiles found for this group.",
        }

    best = {r.id: r.profile.best_confidences() for r in learners}
    total = len(learners)

    distribution: dict[str, dict[str, Any]] = {}
    for skill in graph.skills:
        confidences = []
        with_skill, missing = [], []
        for record in learners:
            conf = best[record.id].get(skill.id)
            if conf is not None and conf >= thresholds["known"]:
                confidences.append(conf)
                with_skill.append(record.name)
            else:
                missing.append(record.name)
        distribution[skill.id] = {
            "assessed": len(with_skill),
            "avg_confidence": round(sum(confidences) / len(confidences), 2) if confidences else 0,
            "learners_with_skill": with_skill,
            "learners_missing": missing,
        }

    common_gaps = sorted(
        (
            {
                "skill_id": skill_id,
                "missing_count": len(entry["learners_missing"]),
                "missing_percentage": _percent(len(entry["learners_missing"]), total),
                "missing_learners": entry["learners_missing"],
            }
            for skill_id, entry in distribution.items()
            if len(entry["learners_missing"]) > total * GAP_SHARE
        ),
        key=lambda gap: -gap["missing_count"],
    )

    strengths = [
        {
            "skill_id": skill_id,
            "coverage": _percent(len(entry["learners_with_skill"]), total),
            "avg_confidence": entry["avg_confidence"],
        }
        for skill_id, entry in distribution.items()
        if len(entry["learners_with_skill"]) >= total * STRENGTH_COVERAGE
        and entry["avg_confidence"] >= STRENGTH_CONFIDENCE
    ]

    return {
        "group": group,
        "domain": domain,
        "member_count": total,
        "members": [
            {
                "id": r.id,
                "name": r.name,
                "assessed_skill_count": len(r.profile.assessed),
                "total_skill_count": len(r.profile.skills),
            }
            for r in learners
        ],
        "common_gaps": common_gaps[:10],
        "group_strengths": strengths[:10],
        "pairing_suggestions": _pairings(learners, thresholds["strong"])[:5],
        "skill_distribution": distribution,
    }


def _transitive_prerequisites(graph: SkillGraph, targets: list[str]) -> list[str]:
    found: dict[str, None] = {}
    visited = set(targets)
    queue = deque(targets)
    while queue:
        for edge in graph.prerequisite_edges(queue.popleft()):
            found[edge.source] = None
            if edge.source not in visited:
                visited.add(edge.source)
                queue.append(edge.source)
    return list(found)


def audit_prerequisites(
    data_dir: Path | str,
    domain: str,
    group: str,
    target_skills: list[str],
    constraints: dict[str, Any] | None = None,
    thresholds: dict[str, float] | None = None,
) -> dict[str, Any]:
    """
    Check a group's readiness for a lesson's target skills.

    A prerequisite is missing for a learner with no entry for it and weak
    below the weak-prerequisite threshold. Prerequisites that fewer than half
    the group cover are reported as critical gaps.
    """
    thresholds = {**DEFAULT_THRESHOLDS, **(thresholds or {})}
    graph = load_graph(data_dir, domain)
    prerequisites = _transitive_prerequisites(graph, target_skills)
    learners = load_group_learners(data_dir, group)

    learner_gaps = []
    for record in learners:
        best = record.profile.best_confidences()
        missing = [p for p in prerequisites if p not in best]
        weak = [
            {"skill": p, "confidence": best[p]}
            for p in prerequisites
            if p in best and best[p] < thresholds["weak_prerequisite"]
        ]
        learner_gaps.append(
            {
                "id": record.id,
                "name": record.name,
                "missing_count": len(missing),
                "weak_count": len(weak),
                "missing_prereqs": missing,
                "weak_prereqs": weak,
            }
        )

    coverage: dict[str, dict[str, Any]] = {}
    for prereq in prerequisites:
        covered = sum(
            1 for gap in learner_gaps
            if prereq not in gap["missing_prereqs"]
            and all(w["skill"] != prereq for w in gap["weak_prereqs"])
        )
        coverage[prereq] = {
            "covered": covered,
            "total": len(learner_gaps),
            "percentage": _percent(covered, len(learner_gaps)),
        }

    critical_gaps = [
        {
            "skill_id": skill_id,
            "label": graph.label_for(skill_id),
            "coverage": entry["percentage"],
            "recommendation": (
                "CRITICAL: No learners have this prerequisite. Add pre-session prep or teach it first."
                if entry["covered"] == 0
                else "WARNING: Most learners are missing this. Consider a review segment."
            ),
        }
        for skill_id, entry in coverage.items()
        if entry["total"] > 0 and entry["covered"] / entry["total"] < CRITICAL_COVERAGE
    ]

    return {
        "domain": domain,
        "group": group,
        "target_skills": target_skills,
        "prerequisites": prerequisites,
        "prerequisite_count": len(prerequisites),
        "critical_gaps": critical_gaps,
        "learner_gaps": learner_gaps,
        "prereq_coverage": coverage,
        "feasible": not critical_gaps,
        "constraints": constraints or {},
    }


def check_assessment_status(data_dir: Path | str, group: str, domain: str) -> dict[str, Any]:
    """Who in a group has been assessed, and which assessment sessions are open."""
    read_group(data_dir, group)

    assessed, not_assessed = [], []
    for record in load_group_learners(data_dir, group):
        if NO_ASSESSED not in record.content and record.profile.assessed:
            assessed.append(
                {
                    "id": record.id,
                    "name": record.name,
                    "skill_count": len(record.profile.assessed),
                    "last_assessed": record.profile.last_assessed or "unknown",
                }
            )
        else:
            not_assessed.append({"id": record.id, "name": record.name})

    total = len(assessed) + len(not_assessed)
    return {
        "group": group,
        "domain": domain,
        "summary": {
            "total": total,
            "assessed": len(assessed),
            "not_assessed": len(not_assessed),
            "completion_rate": _percent(len(assessed), total),
        },
        "assessed_learners": assessed,
        "not_assessed_learners": not_assessed,
        "active_assessment_sessions": [
            {"code": s.code, "created": s.created or "unknown"}
            for s in active_sessions_for_group(data_dir, group)
        ],
    }
