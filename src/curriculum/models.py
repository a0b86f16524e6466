"""Data models for curriculum sequencing."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

Readiness = Literal["ready", "partial", "blocked"]
Outcome = Literal["ahead", "on_track", "behind", "struggled"]


@dataclass
class SkillCoverage:
    """How much of a group holds one skill."""

    have_it: int
    fraction: float
    avg_confidence: float


@dataclass
class GroupSkillProfile:
    total_learners: int
    coverage: dict[str, SkillCoverage] = field(default_factory=dict)

    def fraction(self, skill_id: str) -> float:
        entry = self.coverage.get(skill_id)
        return entry.fraction if entry else 0.0


@dataclass
class SessionAllocation:
    """Skills assigned to one session before readiness is known."""

    skills: list[str]
    bloom_focus: str
    review_skills: list[str] = field(default_factory=list)


@dataclass
class PlannedSkill:
    id: str
    label: str
    bloom_level: str
    readiness: Readiness


@dataclass
class PlannedSession:
    session: int
    bloom_focus: str
    skills: list[PlannedSkill]
    review_skills: list[dict[str, str]]
    milestone: str


@dataclass
class CurriculumPlan:
    """A composed curriculum, as written to ``curricula/{slug}.md``."""

    title: str
    slug: str
    file: Path
    domain: str
    group: str
    number_of_sessions: int
    session_duration: int
    objectives: list[str]
    target_skills: list[str]
    skills_to_teach: list[str]
    critical_path_length: int
    min_sessions_recommended: int
    sessions: list[PlannedSession]
    created: str
    constraints: str | None
    content: str


@dataclass
class CurriculumSession:
    """A ``### Session n: ...`` heading of a curriculum document."""

    number: int
    heading: str
    milestone: str = ""
    completed: bool = False


@dataclass
class ParsedCurriculum:
    title: str
    fields: dict[str, str]
    status: str
    sessions: list[CurriculumSession]


@dataclass
class AdvanceResult:
    slug: str
    completed_session: int
    total_sessions: int
    remaining_sessions: int
    outcome: Outcome
    adjustments: list[str]
    skills_confirmed: list[str]
    skills_struggled: list[str]
    notes: str
    file: Path
    message: str
