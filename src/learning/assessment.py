"""Recording assessment results on a learner profile."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from src.graph.inference import InferredSkill, run_dependency_inference
from src.store.domains import load_graph
from src.store.learners import (
    format_assessed_line,
    format_inferred_line,
    learner_path,
    read_learner,
    update_skill_sections,
    write_learner,
)


@dataclass
class AssessedSkill:
    skill_id: str
    confidence: float
    bloom_level: str
    notes: str | None = None


@dataclass
class AssessmentResult:
    learner_id: str
    domain: str
    assessed_skills: list[AssessedSkill]
    inferred_skills: list[InferredSkill]
    total_assessed: int
    total_inferred: int
    profile_path: Path
    last_assessed: str


def assess_learner(
    data_dir: Path | str,
    learner_id: str,
    domain: str,
    assessed_skills: list[AssessedSkill],
    now: datetime | None = None,
    max_depth: int | None = None,
    min_confidence: float = 0.0,
) -> AssessmentResult:
    """
    Write assessed skills to a learner profile and refresh inferred skills.

    The Assessed and Inferred sections are replaced; every other section of
    the profile is kept.

    Raises:
        RecordNotFoundError: Learner or domain missing
    """
    now = now or datetime.now(timezone.utc)
    record = read_learner(data_dir, learner_id)
    graph = load_graph(data_dir, domain)

    inferred = run_dependency_inference(
        graph,
        [(s.skill_id, s.confidence) for s in assessed_skills],
        max_depth=max_depth,
        min_confidence=min_confidence,
    )

    content = update_skill_sections(
        record.content,
        [format_assessed_line(s.skill_id, s.confidence, s.bloom_level, s.notes) for s in assessed_skills],
        [format_inferred_line(s.skill_id, s.confidence) for s in inferred],
        now,
    )
    write_learner(data_dir, learner_id, content)
    logger.info(
        f"Assessed {learner_id} in '{domain}': {len(assessed_skills)} assessed, {len(inferred)} inferred"
    )

    return AssessmentResult(
        learner_id=learner_id,
        domain=domain,
        assessed_skills=assessed_skills,
        inferred_skills=inferred,
        total_assessed=len(assessed_skills),
        total_inferred=len(inferred),
        profile_path=learner_path(data_dir, learner_id),
        last_assessed=now.isoformat(),
    )
