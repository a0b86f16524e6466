"""
Post-session debriefs.

A debrief records how a taught lesson actually went. Processing one:
- appends observational evidence to each observed learner's Notes
- collects timing adjustments for sections that ran off-plan
- appends domain teaching notes to ``teaching-notes.md``
- bumps the educator's debrief count when an educator profile is named
- writes the debrief itself to ``debriefs/{lesson}-debrief-{date}.md``
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Literal, Optional

from loguru import logger
from pydantic import BaseModel, Field

from src.core.errors import RecordNotFoundError
from src.lessons.store import lesson_path
from src.store.educators import educator_exists, update_educator
from src.store.learners import append_to_notes, learner_path, read_learner, write_learner
from src.store.markdown import set_table_field
from src.store.paths import safe_path
from src.store.teaching_notes import append_teaching_log

OverallRating = Literal["great", "good", "mixed", "rough", "difficult"]
Timing = Literal["as_planned", "shorter", "longer", "skipped"]
Engagement = Literal["high", "moderate", "low", "mixed"]
ObservationType = Literal["struggled", "succeeded", "helped_others", "disengaged", "breakthrough", "other"]
DebriefNoteType = Literal["what_worked", "what_struggled", "prerequisite_gap", "activity_idea"]


class SectionDebrief(BaseModel):
    section_title: str = Field(..., alias="sectionTitle")
    timing: Timing
    timing_delta: Optional[float] = Field(None, alias="timingDelta")
    engagement: Engagement
    notes: str = ""
    surprises: str = ""
    used_contingency: Optional[bool] = Field(None, alias="usedContingency")

    model_config = {"populate_by_name": True}


class Observation(BaseModel):
    skill_id: str = Field(..., alias="skillId")
    type: ObservationType
    detail: str
    confidence_change: float = Field(..., ge=-0.3, le=0.3, alias="confidenceChange")
    bloom_level_change: Optional[str] = Field(None, alias="bloomLevelChange")

    model_config = {"populate_by_name": True}


class LearnerObservations(BaseModel):
    learner_id: str = Field(..., alias="learnerId")
    observations: List[Observation]

    model_config = {"populate_by_name": True}


class DebriefTeachingNote(BaseModel):
    skill_id: str = Field(..., alias="skillId")
    note_type: DebriefNoteType = Field(..., alias="noteType")
    note: str

    model_config = {"populate_by_name": True}


class Debrief(BaseModel):
    """An educator's account of one taught lesson."""

    lesson_id: str = Field("", alias="lessonId")
    group_name: str = Field(..., alias="groupName")
    domain: str
    overall_rating: OverallRating = Field(..., alias="overallRating")
    overall_notes: str = Field("", alias="overallNotes")
    section_feedback: List[SectionDebrief] = Field(default_factory=list, alias="sectionFeedback")
    learner_observations: List[LearnerObservations] = Field(default_factory=list, alias="learnerObservations")
    unplanned_moments: str = Field("", alias="unplannedMoments")
    educator_reflection: str = Field("", alias="educatorReflection")
    teaching_notes: List[DebriefTeachingNote] = Field(default_factory=list, alias="teachingNotes")
    educator_id: Optional[str] = Field(None, alias="educatorId")

    model_config = {"populate_by_name": True}


def _signed(value: float) -> str:
    return f"+{value:g}" if value >= 0 else f"{value:g}"


def _apply_learner_observations(
    data_dir: Path | str, debrief: Debrief, now: datetime
) -> list[dict[str, Any]]:
    day = now.date().isoformat()
    updates: list[dict[str, Any]] = []
    for learner in debrief.learner_observations:
        if not learner_path(data_dir, learner.learner_id).is_file():
            logger.warning(f"Debrief for {debrief.lesson_id} names unknown learner {learner.learner_id}")
            continue
        record = read_learner(data_dir, learner.learner_id)
        lines = [
            f"- [{day}] {obs.type}: {obs.detail} "
            f"({obs.skill_id}: {_signed(obs.confidence_change)} confidence, observational)"
            for obs in learner.observations
        ]
        block = f"### Debrief Observations ({day})\n\n" + "\n".join(lines)
        content = append_to_notes(record.content, block)
        content = set_table_field(content, "Last assessed", f"{now.isoformat()} (debrief)")
        write_learner(data_dir, learner.learner_id, content)

        updates.extend(
            {
                "learnerId": learner.learner_id,
                "skillId": obs.skill_id,
                "type": obs.type,
                "confidenceChange": obs.confidence_change,
                "detail": obs.detail,
            }
            for obs in learner.observations
        )
    return updates


def _section_block(section: SectionDebrief) -> str:
    timing = section.timing
    if section.timing_delta:
        timing += f" ({_signed(section.timing_delta)} min)"
    lines = [
        f"### {section.section_title}",
        "",
        "| Aspect | Value |",
        "|---|---|",
        f"| **Timing** | {timing} |",
        f"| **Engagement** | {section.engagement} |",
    ]
    if section.used_contingency is not None:
        lines.append(f"| **Used contingency** | {'Yes' if section.used_contingency else 'No'} |")
    if section.notes:
        lines += ["", section.notes]
    if section.surprises:
        lines += ["", f"**Surprises:** {section.surprises}"]
    return "\n".join(lines)


def render_debrief(
    debrief: Debrief,
    profile_updates: list[dict[str, Any]],
    timing_adjustments: list[dict[str, Any]],
    now: datetime,
) -> str:
    sections = "\n\n".join(_section_block(s) for s in debrief.section_feedback) or "_No section feedback._"

    if debrief.learner_observations:
        learners = "\n\n".join(
            f"### {learner.learner_id}\n\n"
            + "\n".join(
                f"- **{o.type}** on {o.skill_id}: {o.detail} (confidence: {_signed(o.confidence_change)})"
                for o in learner.observations
            )
            for learner in debrief.learner_observations
        )
    else:
        learners = "_No individual observations recorded._"

    if debrief.teaching_notes:
        notes = "\n".join(f"- ({n.note_type}) **{n.skill_id}**: {n.note}" for n in debrief.teaching_notes)
    else:
        notes = "_No teaching notes recorded._"

    learner_count = len({u["learnerId"] for u in profile_updates})
    return (
        f"# Post-Session Debrief: {debrief.lesson_id}\n\n"
        "| Field | Value |\n"
        "|---|---|\n"
        f"| **Lesson** | {debrief.lesson_id} |\n"
        f"| **Group** | {debrief.group_name} |\n"
        f"| **Domain** | {debrief.domain} |\n"
        f"| **Date** | {now.isoformat()} |\n"
        f"| **Overall rating** | {debrief.overall_rating} |\n\n"
        f"## Overall Impression\n\n{debrief.overall_notes or '_No overall notes._'}\n\n"
        f"## Section-by-Section Feedback\n\n{sections}\n\n"
        f"## Learner Observations\n\n{learners}\n\n"
        f"## Unplanned Moments\n\n{debrief.unplanned_moments or '_Nothing reported._'}\n\n"
        f"## Educator Reflection\n\n{debrief.educator_reflection or '_No reflection recorded._'}\n\n"
        f"## Teaching Notes\n\n{notes}\n\n"
        "## System Updates Applied\n\n"
        f"- **Learner profiles updated:** {len(profile_updates)} observation(s) across {learner_count} learner(s)\n"
        f"- **Timing adjustments recorded:** {len(timing_adjustments)} section(s)\n"
        f"- **Teaching notes saved:** {len(debrief.teaching_notes)} note(s)\n"
    )


def process_debrief(data_dir: Path | str, debrief: Debrief, now: datetime | None = None) -> dict[str, Any]:
    """Apply a debrief to learner, domain and educator records and save it."""
    now = now or datetime.now(timezone.utc)
    if not lesson_path(data_dir, debrief.lesson_id).is_file():
        raise RecordNotFoundError("Lesson", debrief.lesson_id)

    profile_updates = _apply_learner_observations(data_dir, debrief, now)

    timing_adjustments = [
        {
            "section": s.section_title,
            "timing": s.timing,
            "delta": s.timing_delta,
            "notes": s.notes,
        }
        for s in debrief.section_feedback
        if s.timing != "as_planned"
    ]

    append_teaching_log(
        data_dir,
        debrief.domain,
        [(n.note_type, n.skill_id, n.note) for n in debrief.teaching_notes],
        now,
    )

    if debrief.educator_id:
        if educator_exists(data_dir, debrief.educator_id):
            update_educator(data_dir, debrief.educator_id, increment_debriefs=True, now=now)
        else:
            logger.warning(f"Debrief names unknown educator {debrief.educator_id}")

    filename = f"{debrief.lesson_id}-debrief-{now.date().isoformat()}.md"
    path = safe_path(data_dir, "debriefs", filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_debrief(debrief, profile_updates, timing_adjustments, now), encoding="utf-8")
    logger.info(
        f"Debrief for {debrief.lesson_id} saved: {len(profile_updates)} observation(s), "
        f"{len(timing_adjustments)} timing adjustment(s), {len(debrief.teaching_notes)} teaching note(s)"
    )

    return {
        "debriefSaved": True,
        "debriefPath": str(path),
        "debriefFilename": filename,
        "lessonId": debrief.lesson_id,
        "groupName": debrief.group_name,
        "domain": debrief.domain,
        "overallRating": debrief.overall_rating,
        "profileUpdates": {
            "count": len(profile_updates),
            "learners": sorted({u["learnerId"] for u in profile_updates}),
            "updates": profile_updates,
        },
        "timingAdjustments": timing_adjustments,
        "teachingNotesSaved": len(debrief.teaching_notes),
        "timestamp": now.isoformat(),
    }
