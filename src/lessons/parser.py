"""
Lesson plan markdown parser.

Turns a lesson plan into metadata, learning objectives and timed sections.
Section timings use ``H:MM`` offsets from the start of the lesson, so
``1:30`` means 90 minutes in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DURATION = 60
MAX_ACTIVITIES = 3

TITLE = re.compile(r"^#\s+(?:Lesson Plan:\s*)?(.+)", re.MULTILINE)
PREPARED_FOR = re.compile(r"\*\*Prepared for:\*\*\s*(.+)")
DATE = re.compile(r"\*\*Date:\*\*\s*(.+)")
DOMAIN = re.compile(r"\*\*Domain:\*\*\s*(.+)")
DURATION = re.compile(r"\|\s*\*\*Duration\*\*\s*\|\s*(\d+)\s*minutes?", re.IGNORECASE)
TOPIC = re.compile(r"\|\s*\*\*Topic\*\*\s*\|\s*(.+?)\s*\|")
ONE_THING = re.compile(r"\|\s*\*\*The one thing\*\*\s*\|\s*(.+?)\s*\|")

OBJECTIVES = re.compile(r"### Learning Objectives\n(.*?)(?=\n###|\n---|\Z)", re.DOTALL)
NUMBERED = re.compile(r"^\d+\.\s*")

PHASE = re.compile(r"###\s+PHASE\s+\d+:\s+(.+?)\s*\((\d+):(\d+)\s*-\s*(\d+):(\d+)\)")
SECTION = re.compile(r"\*\*\[(\d+):(\d+)\s*-\s*(\d+):(\d+)\]\s*(.+?)\s*\((\d+)\s*min\)\*\*")
ACTIVITY = re.compile(r"^(?:Educator:|Say:|Students:|Watch for:)\s*.+", re.MULTILINE)


@dataclass
class LessonMeta:
    title: str = "Untitled Lesson"
    group: str = ""
    date: str = ""
    domain: str = ""
    duration: int = DEFAULT_DURATION
    topic: str = ""
    one_thing: str = ""


@dataclass
class LessonSection:
    id: str
    phase: str
    title: str
    start_min: int
    end_min: int
    duration_min: int
    content: str = ""
    activities: list[str] = field(default_factory=list)


@dataclass
class ParsedLesson:
    meta: LessonMeta
    sections: list[LessonSection]
    objectives: list[str]
    full_markdown: str


def _minutes(hours: str, minutes: str) -> int:
    return int(hours) * 60 + int(minutes)


def _first(pattern: re.Pattern[str], text: str, default: str = "") -> str:
    match = pattern.search(text)
    return match.group(1).strip() if match else default


def parse_meta(markdown: str) -> LessonMeta:
    duration = DURATION.search(markdown)
    return LessonMeta(
        title=_first(TITLE, markdown, "Untitled Lesson"),
        group=_first(PREPARED_FOR, markdown),
        date=_first(DATE, markdown),
        domain=_first(DOMAIN, markdown),
        duration=int(duration.group(1)) if duration else DEFAULT_DURATION,
        topic=_first(TOPIC, markdown),
        one_thing=_first(ONE_THING, markdown),
    )


def parse_objectives(markdown: str) -> list[str]:
    match = OBJECTIVES.search(markdown)
    if not match:
        return []
    return [
        NUMBERED.sub("", line.strip()).strip()
        for line in match.group(1).splitlines()
        if NUMBERED.match(line.strip())
    ]


def parse_sections(markdown: str) -> list[LessonSection]:
    """
    Timed sections (``**[0:05 - 0:15] Title (10 min)**``) with their phase.

    A section belongs to the ``### PHASE n: NAME (H:MM - H:MM)`` whose window
    contains it. Plans without timed sections fall back to one section per
    phase.
    """
    phases = [
        (m.group(1).strip(), _minutes(m.group(2), m.group(3)), _minutes(m.group(4), m.group(5)))
        for m in PHASE.finditer(markdown)
    ]
    matches = list(SECTION.finditer(markdown))

    sections: list[LessonSection] = []
    for i, match in enumerate(matches):
        start = _minutes(match.group(1), match.group(2))
        end = _minutes(match.group(3), match.group(4))
        next_start = matches[i + 1].start() if i + 1 < len(matches) else len(markdown)
        content = markdown[match.end():next_start].strip()
        phase = next((name for name, p_start, p_end in phases if start >= p_start and end <= p_end), "")

        sections.append(
            LessonSection(
                id=f"section-{i}",
                phase=phase,
                title=match.group(5).strip(),
                start_min=start,
                end_min=end,
                duration_min=int(match.group(6)),
                content=content,
                activities=[a.strip() for a in ACTIVITY.findall(content)[:MAX_ACTIVITIES]],
            )
        )

    if not sections:
        sections = [
            LessonSection(
                id=f"phase-{i}",
                phase=name,
                title=name,
                start_min=start,
                end_min=end,
                duration_min=end - start,
            )
            for i, (name, start, end) in enumerate(phases)
        ]

    return sections


def parse_lesson(markdown: str) -> ParsedLesson:
    return ParsedLesson(
        meta=parse_meta(markdown),
        sections=parse_sections(markdown),
        objectives=parse_objectives(markdown),
        full_markdown=markdown,
    )


def lesson_id_from_path(path: str | Path) -> str:
    return Path(path).stem
