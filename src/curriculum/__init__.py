"""Curriculum: multi-session sequencing over a skill graph and progress tracking."""

from src.curriculum.composer import compose_curriculum
from src.curriculum.models import AdvanceResult, CurriculumPlan, GroupSkillProfile
from src.curriculum.progress import advance_curriculum, list_curricula, parse_curriculum

__all__ = [
    "compose_curriculum",
    "advance_curriculum",
    "list_curricula",
    "parse_curriculum",
    "AdvanceResult",
    "CurriculumPlan",
    "GroupSkillProfile",
]
