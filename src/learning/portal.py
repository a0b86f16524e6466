"""
Learner portal.

Each learner can get a persistent, URL-safe portal code
(``{first name}-{group}-{random}``) stored in the ``## Portal`` section of
their profile. The portal view is a read-only summary of their skills,
assessments and shared notes, framed for the viewing audience.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from src.core.errors import GraphValidationError, RecordNotFoundError
from src.learning.portal_i18n import build_narrative
from src.store.assessments import assessments_for_learner
from src.store.domains import SkillGraph, load_graph
from src.store.learners import (
    find_learner_by_portal_code,
    read_learner,
    set_portal_section,
    write_learner,
)
from src.store.notes import load_notes
from src.store.paths import random_token, slugify

GROUP_SLUG_LENGTH = 8
GROWTH_THRESHOLD = 0.7


@dataclass
class PortalCode:
    learner_id: str
    name: str
    portal_code: str
    portal_url: str
    generated_at: str


def generate_portal_code(
    data_dir: Path | str,
    learner_id: str,
    group_id: str,
    frontend_url: str,
    length: int = 4,
    now: datetime | None = None,
) -> PortalCode:
    """Create (or regenerate) a learner's portal code and store it on the profile."""
    now = now or datetime.now(timezone.utc)
    record = read_learner(data_dir, learner_id)
    name = record.profile.name if record.profile.name != "Unknown" else learner_id

    first_name = slugify(name.split(" ")[0]) or slugify(learner_id)
    group_part = slugify(group_id)[:GROUP_SLUG_LENGTH].strip("-")
    code = f"{first_name}-{group_part}-{random_token(length)}"
    url = f"{frontend_url}/learner/{code}"

    write_learner(data_dir, learner_id, set_portal_section(record.content, code, url, now))
    logger.info(f"Generated portal code for {learner_id}: {code}")
    return PortalCode(
        learner_id=learner_id,
        name=name,
        portal_code=code,
        portal_url=url,
        generated_at=now.isoformat(),
    )


def _load_domain_graph(data_dir: Path | str, domain: str) -> SkillGraph | None:
    if not domain:
        return None
    try:
        return load_graph(data_dir, domain)
    except (RecordNotFoundError, GraphValidationError) as e:
        logger.warning(f"Portal view without skill graph for '{domain}': {e}")
        return None


def get_portal_view(
    data_dir: Path | str,
    portal_code: str,
    language: str = "en",
    audience: str = "learner",
    frontend_url: str = "http://localhost:3001",
) -> dict[str, Any]:
    """
    Everything the portal page shows for a portal code.

    Raises:
        RecordNotFoundError: No learner carries this portal code
    """
    record = find_learner_by_portal_code(data_dir, portal_code)
    if record is None:
        raise RecordNotFoundError("Portal code", portal_code)

    profile = record.profile
    graph = _load_domain_graph(data_dir, profile.domain)

    assessed = [
        {"skill_id": s.skill_id, "confidence": s.confidence, "bloom_level": s.bloom_level}
        for s in profile.assessed
    ]
    inferred = [{"skill_id": s.skill_id, "confidence": s.confidence} for s in profile.inferred]
    assessed_ids = {s.skill_id for s in profile.assessed}
    inferred_ids = {s.skill_id for s in profile.inferred}
    known = assessed_ids | inferred_ids

    # Next: unknown skills whose dependencies are all known
    next_skills = []
    if graph is not None:
        next_skills = [
            {"skill_id": s.id, "label": s.label, "bloom_level": s.bloom_level}
            for s in graph.skills
            if s.id not in known and all(d in known for d in s.dependencies)
        ]

    top_skills = sorted(assessed, key=lambda s: -s["confidence"])[:5]
    growth_areas = sorted(
        (s for s in assessed if s["confidence"] < GROWTH_THRESHOLD), key=lambda s: s["confidence"]
    )[:3]
    labels = {s.id: s.label for s in graph.skills} if graph else {}

    best = profile.best_confidences()
    skill_graph = None
    if graph is not None:
        skill_graph = {
            "total_skills": len(graph.skills),
            "skills": [
                {
                    "id": s.id,
                    "label": s.label,
                    "bloom_level": s.bloom_level,
                    "status": "assessed" if s.id in assessed_ids else "inferred" if s.id in inferred_ids else "unassessed",
                    "confidence": best.get(s.id),
                }
                for s in graph.skills
            ],
        }

    return {
        "portal_code": portal_code,
        "language": language,
        "audience": audience,
        "learner": {
            "id": record.id,
            "name": profile.name,
            "domain": profile.domain,
            "group": profile.group,
        },
        "progress_data": {
            "learner_name": profile.name,
            "domain": profile.domain,
            "total_skills_in_domain": len(graph.skills) if graph else 0,
            "assessed_count": len(assessed),
            "inferred_count": len(inferred),
            "known_count": len(known),
            "next_steps": next_skills[:3],
            "top_skills": top_skills,
            "growth_areas": growth_areas,
        },
        "skill_map": {"assessed": assessed, "inferred": inferred, "next": next_skills},
        "skill_labels": labels,
        "assessments": assessments_for_learner(data_dir, record.id, profile.group, frontend_url),
        "notes": [n.model_dump(mode="json") for n in load_notes(data_dir, record.id)],
        "skill_graph": skill_graph,
        "narrative": build_narrative(profile.name, top_skills, next_skills[:3], labels, language, audience),
    }
