"""Lesson plan files (``lessons/{id}.md``) and live-session feedback logs."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from loguru import logger

from src.core.errors import RecordNotFoundError
from src.lessons.parser import ParsedLesson, lesson_id_from_path, parse_lesson
from src.store.paths import safe_path, validate_record_id

SectionFeedback = Literal["went_well", "struggled", "skipped", "modified"]


def lesson_path(data_dir: Path | str, lesson_id: str) -> Path:
    validate_record_id(lesson_id)
    return safe_path(data_dir, "lessons", f"{lesson_id}.md")


def load_lesson(data_dir: Path | str, lesson_id: str) -> ParsedLesson:
    try:
        markdown = lesson_path(data_dir, lesson_id).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise RecordNotFoundError("Lesson", lesson_id) from e
    return parse_lesson(markdown)


def list_lessons(data_dir: Path | str) -> list[dict[str, Any]]:
    """Summary of every lesson plan, sorted by id."""
    directory = safe_path(data_dir, "lessons")
    if not directory.is_dir():
        return []

    lessons = []
    for path in sorted(directory.glob("*.md")):
        parsed = parse_lesson(path.read_text(encoding="utf-8"))
        lessons.append(
            {
                "id": lesson_id_from_path(path),
                "title": parsed.meta.title,
                "group": parsed.meta.group,
                "date": parsed.meta.date,
                "domain": parsed.meta.domain,
                "duration": parsed.meta.duration,
                "topic": parsed.meta.topic,
                "section_count": len(parsed.sections),
                "objective_count": len(parsed.objectives),
            }
        )
    return lessons


def record_section_feedback(
    data_dir: Path | str,
    lesson_id: str,
    section_id: str,
    feedback: SectionFeedback,
    notes: str | None = None,
    elapsed_min: float | None = None,
    now: datetime | None = None,
) -> Path:
    """Append one feedback entry to today's ``live-sessions/{lesson}-{date}.jsonl``."""
    validate_record_id(lesson_id)
    now = now or datetime.now(timezone.utc)
    path = safe_path(data_dir, "live-sessions", f"{lesson_id}-{now.date().isoformat()}.jsonl")
    path.parent.mkdir(parents=True, exist_ok=True)

    entry = {
        "timestamp": now.isoformat(),
        "lessonId": lesson_id,
        "sectionId": section_id,
        "feedback": feedback,
        "notes": notes or "",
        "elapsedMin": elapsed_min,
    }
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry) + "\n")

    logger.debug(f"Section feedback for {lesson_id}/{section_id}: {feedback}")
    return path
