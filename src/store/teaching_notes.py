"""
Per-domain teaching notes.

Stored twice: ``teaching-notes.json`` is the structured record and
``teaching-notes.md`` a human-readable log of dated bullets.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from src.core.errors import GraphValidationError
from src.store.domains import domain_dir

NoteType = Literal[
    "timing",
    "success_pattern",
    "confusion_point",
    "failure_pattern",
    "activity_recommendation",
    "group_composition",
    "accessibility",
]

# Structured note type -> label used in the markdown log
MARKDOWN_LABELS = {
    "timing": "timing",
    "success_pattern": "what_worked",
    "confusion_point": "what_struggled",
    "failure_pattern": "what_struggled",
    "activity_recommendation": "activity_idea",
    "group_composition": "what_worked",
    "accessibility": "prerequisite_gap",
}

EDUCATOR_DIRECT_CONFIDENCE = 0.85


class TeachingNote(BaseModel):
    id: str
    skill_id: str = Field(alias="skillId")
    type: str
    observation: str
    confidence: float
    session_count: int = Field(1, alias="sessionCount")
    confirmed_in: list[str] = Field(default_factory=list, alias="confirmedIn")
    context: dict[str, Any] = Field(default_factory=dict)
    source: str
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    model_config = {"populate_by_name": True}


class TeachingNotesFile(BaseModel):
    domain: str
    version: str = "1.0.0"
    session_count: int = Field(0, alias="sessionCount")
    last_updated: str = Field(alias="lastUpdated")
    notes: list[TeachingNote] = Field(default_factory=list)
    patterns: list[dict[str, Any]] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


def _load(data_dir: Path | str, domain: str, now: datetime) -> TeachingNotesFile:
    path = domain_dir(data_dir, domain) / "teaching-notes.json"
    if not path.exists():
        return TeachingNotesFile(domain=domain, last_updated=now.isoformat())
    try:
        return TeachingNotesFile.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except json.JSONDecodeError as e:
        raise GraphValidationError(f"teaching-notes.json for domain '{domain}' is not valid JSON: {e}") from e
    except ValidationError as e:
        raise GraphValidationError(
            f"teaching-notes.json for domain '{domain}' is malformed",
            {"errors": e.errors(include_url=False)},
        ) from e


def _next_id(notes: list[TeachingNote]) -> str:
    highest = 0
    for note in notes:
        suffix = note.id.removeprefix("tn-")
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"tn-{highest + 1:03d}"


def add_teaching_note(
    data_dir: Path | str,
    domain: str,
    skill_id: str,
    note_type: NoteType,
    observation: str,
    session_ref: str | None = None,
    context: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> tuple[TeachingNote, int]:
    """Record an educator's note. Returns the note and the domain's note count."""
    now = now or datetime.now(timezone.utc)
    directory = domain_dir(data_dir, domain)
    directory.mkdir(parents=True, exist_ok=True)

    data = _load(data_dir, domain, now)
    context = context or {}
    note_context = {
        "groupLevel": context.get("groupLevel") or "any",
        "setting": context.get("setting") or "any",
    }
    for key in ("minGroupSize", "maxGroupSize"):
        if context.get(key) is not None:
            note_context[key] = context[key]

    note = TeachingNote(
        id=_next_id(data.notes),
        skill_id=skill_id,
        type=note_type,
        observation=observation,
        confidence=EDUCATOR_DIRECT_CONFIDENCE,
        session_count=1,
        confirmed_in=[session_ref] if session_ref else [],
        context=note_context,
        source="educator_direct",
        created_at=now.isoformat(),
        updated_at=now.isoformat(),
    )
    data.notes.append(note)
    data.last_updated = now.isoformat()

    (directory / "teaching-notes.json").write_text(
        data.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
    )
    append_teaching_log(
        data_dir, domain, [(MARKDOWN_LABELS.get(note_type, note_type), skill_id, observation)], now
    )
    logger.info(f"Added teaching note {note.id} to domain '{domain}'")
    return note, len(data.notes)


def query_teaching_notes(
    data_dir: Path | str,
    domain: str,
    skill_id: str | None = None,
    note_type: str | None = None,
) -> list[TeachingNote]:
    """Notes for a domain, most confident first."""
    data = _load(data_dir, domain, datetime.now(timezone.utc))
    notes = [
        n for n in data.notes
        if (skill_id is None or n.skill_id == skill_id)
        and (note_type is None or n.type == note_type)
    ]
    return sorted(notes, key=lambda n: n.confidence, reverse=True)


def append_teaching_log(
    data_dir: Path | str,
    domain: str,
    entries: list[tuple[str, str, str]],
    now: datetime | None = None,
) -> None:
    """Append ``(label, skill_id, text)`` bullets to the domain's markdown log."""
    if not entries:
        return
    now = now or datetime.now(timezone.utc)
    directory = domain_dir(data_dir, domain)
    directory.mkdir(parents=True, exist_ok=True)
    md_path = directory / "teaching-notes.md"
    if md_path.exists():
        content = md_path.read_text(encoding="utf-8").rstrip() + "\n"
    else:
        content = (
            f"# Teaching Notes: {domain}\n\n"
            "Observational notes from post-session debriefs. These inform future lesson composition.\n"
        )
    day = now.date().isoformat()
    for label, skill_id, text in entries:
        content += f"- **[{day}]** ({label}) {skill_id}: {text}\n"
    md_path.write_text(content, encoding="utf-8")


def query_teaching_wisdom(
    data_dir: Path | str,
    domain: str,
    skill_ids: list[str] | None = None,
    note_types: list[str] | None = None,
    min_confidence: float = 0.0,
    group_level: str | None = None,
    include_patterns: bool = True,
) -> dict[str, Any]:
    """
    Accumulated teaching knowledge for a domain: notes plus cross-skill patterns.

    Notes whose context names a group level only match that level; notes
    recorded for ``any`` level always match. Results are ordered by
    confidence, then by how many sessions confirmed them.
    """
    path = domain_dir(data_dir, domain) / "teaching-notes.json"
    query = {
        "skillIds": skill_ids,
        "noteTypes": note_types,
        "minConfidence": min_confidence,
        "groupLevel": group_level,
    }
    if not path.exists():
        return {
            "found": False,
            "domain": domain,
            "message": f"No teaching notes recorded for domain '{domain}' yet.",
            "query": query,
            "notes": [],
            "patterns": [],
        }

    data = _load(data_dir, domain, datetime.now(timezone.utc))
    wanted_skills = set(skill_ids or [])
    wanted_types = set(note_types or [])

    def matches(note: TeachingNote) -> bool:
        if wanted_skills and note.skill_id not in wanted_skills:
            return False
        if wanted_types and note.type not in wanted_types:
            return False
        if note.confidence < min_confidence:
            return False
        if group_level:
            level = note.context.get("groupLevel", "any")
            if level != "any" and group_level not in level:
                return False
        return True

    notes = sorted(
        (n for n in data.notes if matches(n)),
        key=lambda n: (n.confidence, n.session_count),
        reverse=True,
    )

    patterns: list[dict[str, Any]] = []
    if include_patterns:
        patterns = [
            p for p in data.patterns
            if not wanted_skills or wanted_skills & set(p.get("affectedSkills", []))
        ]

    breakdown: dict[str, int] = {}
    for note in notes:
        breakdown[note.type] = breakdown.get(note.type, 0) + 1
    avg = round(sum(n.confidence for n in notes) / len(notes), 2) if notes else 0.0

    return {
        "found": True,
        "domain": domain,
        "totalSessionsAnalyzed": data.session_count,
        "lastUpdated": data.last_updated,
        "query": query,
        "summary": {
            "notesReturned": len(notes),
            "patternsReturned": len(patterns),
            "noteTypeBreakdown": breakdown,
            "avgConfidence": avg,
        },
        "notes": [n.model_dump(by_alias=True) for n in notes],
        "patterns": patterns,
    }
