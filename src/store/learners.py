"""
Learner profile records.

A learner profile is a markdown file at ``learners/{id}.md``. Skills are
listed as bullets under ``## Assessed Skills`` and ``## Inferred Skills``;
the header table carries group, domain, timestamps and (once generated)
the portal code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Literal

from loguru import logger

from src.core.errors import RecordNotFoundError
from src.store.markdown import (
    has_section,
    replace_section,
    section_body,
    set_table_field,
    table_field,
)
from src.store.paths import safe_path, validate_record_id

ASSESSED_SECTION = "Assessed Skills"
INFERRED_SECTION = "Inferred Skills"
AFFECTIVE_SECTION = "Affective Profile"
PORTAL_SECTION = "Portal"
NOTES_SECTION = "Notes"

NO_ASSESSED = "_No skills assessed yet._"
NO_INFERRED = "_No skills inferred._"
NOT_YET_ASSESSED = "Not yet assessed"
NO_NOTES = "_No notes yet._"

NAME_PATTERN = re.compile(r"# Learner Profile: (.+)")
ASSESSED_LINE = re.compile(
    r"^- (.+?):\s*([\d.]+)\s*confidence(?:.*?at\s+(\w+)\s+level)?", re.IGNORECASE
)
INFERRED_LINE = re.compile(r"^- (.+?):\s*([\d.]+)\s*confidence", re.IGNORECASE)
AFFECTIVE_CONFIDENCE = re.compile(r"\*\*Confidence:\*\*\s*(.+)")
AFFECTIVE_SOCIAL = re.compile(r"\*\*Social dynamics:\*\*\s*(.+?)(?=\n-\s*\*\*|\Z)", re.DOTALL)


@dataclass
class SkillEntry:
    """One skill line from a learner profile."""

    skill_id: str
    confidence: float
    bloom_level: str
    source: Literal["assessed", "inferred"]


@dataclass
class AffectiveProfile:
    confidence: str = ""
    social_dynamics: str = ""


@dataclass
class LearnerProfile:
    """Structured view of a learner profile markdown file."""

    name: str
    group: str = ""
    domain: str = ""
    last_assessed: str = ""
    portal_code: str | None = None
    skills: list[SkillEntry] = field(default_factory=list)
    affective: AffectiveProfile | None = None

    @property
    def assessed(self) -> list[SkillEntry]:
        return [s for s in self.skills if s.source == "assessed"]

    @property
    def inferred(self) -> list[SkillEntry]:
        return [s for s in self.skills if s.source == "inferred"]

    def best_confidences(self) -> dict[str, float]:
        """Highest confidence per skill across assessed and inferred entries."""
        best: dict[str, float] = {}
        for entry in self.skills:
            best[entry.skill_id] = max(best.get(entry.skill_id, 0.0), entry.confidence)
        return best


@dataclass
class LearnerRecord:
    """A profile together with its id and raw markdown."""

    id: str
    content: str
    profile: LearnerProfile

    @property
    def name(self) -> str:
        return self.profile.name


def parse_learner_profile(content: str) -> LearnerProfile:
    """Parse a learner profile. This is the only parser other modules should use."""
    name_match = NAME_PATTERN.search(content)

    skills: list[SkillEntry] = []
    for line in section_body(content, ASSESSED_SECTION).splitlines():
        match = ASSESSED_LINE.match(line)
        if match:
            skills.append(
                SkillEntry(
                    skill_id=match.group(1).strip(),
                    confidence=float(match.group(2)),
                    bloom_level=match.group(3) or "unknown",
                    source="assessed",
                )
            )

    for line in section_body(content, INFERRED_SECTION).splitlines():
        match = INFERRED_LINE.match(line)
        if match:
            skills.append(
                SkillEntry(
                    skill_id=match.group(1).strip(),
                    confidence=float(match.group(2)),
                    bloom_level="inferred",
                    source="inferred",
                )
            )

    affective = None
    if has_section(content, AFFECTIVE_SECTION):
        body = section_body(content, AFFECTIVE_SECTION)
        conf_match = AFFECTIVE_CONFIDENCE.search(body)
        social_match = AFFECTIVE_SOCIAL.search(body)
        affective = AffectiveProfile(
            confidence=conf_match.group(1).strip() if conf_match else "",
            social_dynamics=social_match.group(1).strip() if social_match else "",
        )

    return LearnerProfile(
        name=name_match.group(1).strip() if name_match else "Unknown",
        group=table_field(content, "Group") or "",
        domain=table_field(content, "Domain") or "",
        last_assessed=table_field(content, "Last assessed") or "",
        portal_code=table_field(content, "Portal Code"),
        skills=skills,
        affective=affective,
    )


def render_learner_profile(
    learner_id: str,
    name: str,
    group: str,
    domain: str,
    created: datetime,
) -> str:
    """Markdown for a freshly created learner profile."""
    return (
        f"# Learner Profile: {name}\n\n"
        "| Field | Value |\n"
        "|---|---|\n"
        f"| **ID** | {learner_id} |\n"
        f"| **Name** | {name} |\n"
        f"| **Group** | {group} |\n"
        f"| **Domain** | {domain} |\n"
        f"| **Created** | {created.isoformat()} |\n"
        f"| **Last assessed** | {NOT_YET_ASSESSED} |\n\n"
        f"## {ASSESSED_SECTION}\n\n{NO_ASSESSED}\n\n"
        f"## {INFERRED_SECTION}\n\n_No skills inferred yet._\n\n"
        f"## {NOTES_SECTION}\n\n{NO_NOTES}\n"
    )


def format_assessed_line(skill_id: str, confidence: float, bloom_level: str, notes: str | None = None) -> str:
    line = f"- {skill_id}: {confidence:g} confidence — demonstrated at {bloom_level} level"
    if notes:
        line += f" ({notes})"
    return line


def format_inferred_line(skill_id: str, confidence: float) -> str:
    return f"- {skill_id}: {confidence:g} confidence (inferred)"


def update_skill_sections(
    content: str,
    assessed_lines: Iterable[str],
    inferred_lines: Iterable[str],
    now: datetime,
) -> str:
    """
    Rewrite the assessed/inferred sections and the last-assessed stamp.

    All other sections (affective profile, portal, notes, ...) are kept as-is.
    """
    assessed_body = "\n".join(assessed_lines) or NO_ASSESSED
    inferred_body = "\n".join(inferred_lines) or NO_INFERRED

    content = replace_section(content, ASSESSED_SECTION, assessed_body, insert_before=NOTES_SECTION)
    content = replace_section(content, INFERRED_SECTION, inferred_body, insert_before=NOTES_SECTION)
    return set_table_field(content, "Last assessed", now.isoformat())


def append_to_notes(content: str, block: str) -> str:
    """Append a block to the ``## Notes`` section, dropping its placeholder."""
    body = section_body(content, NOTES_SECTION).strip()
    if body == NO_NOTES:
        body = ""
    return replace_section(content, NOTES_SECTION, f"{body}\n\n{block.strip()}".strip())


def set_portal_section(content: str, portal_code: str, portal_url: str, now: datetime) -> str:
    """Replace the ``## Portal`` section, inserting it before Notes when absent."""
    body = (
        "| Field | Value |\n"
        "|---|---|\n"
        f"| **Portal Code** | {portal_code} |\n"
        f"| **Portal URL** | {portal_url} |\n"
        f"| **Generated** | {now.isoformat()} |"
    )
    return replace_section(content, PORTAL_SECTION, body, insert_before=NOTES_SECTION)


# ========================================
# File access
# ========================================


def learners_dir(data_dir: Path | str) -> Path:
    return safe_path(data_dir, "learners")


def learner_path(data_dir: Path | str, learner_id: str) -> Path:
    validate_record_id(learner_id)
    return safe_path(data_dir, "learners", f"{learner_id}.md")


def learner_exists(data_dir: Path | str, learner_id: str) -> bool:
    return learner_path(data_dir, learner_id).is_file()


def read_learner(data_dir: Path | str, learner_id: str) -> LearnerRecord:
    path = learner_path(data_dir, learner_id)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise RecordNotFoundError("Learner profile", learner_id) from e
    return LearnerRecord(id=learner_id, content=content, profile=parse_learner_profile(content))


def write_learner(data_dir: Path | str, learner_id: str, content: str) -> Path:
    path = learner_path(data_dir, learner_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.debug(f"Wrote learner profile {path}")
    return path


def iter_learners(data_dir: Path | str) -> Iterable[LearnerRecord]:
    """All learner records, sorted by id."""
    directory = learners_dir(data_dir)
    if not directory.is_dir():
        return
    for path in sorted(directory.glob("*.md")):
        content = path.read_text(encoding="utf-8")
        yield LearnerRecord(id=path.stem, content=content, profile=parse_learner_profile(content))


def load_group_learners(data_dir: Path | str, group: str) -> list[LearnerRecord]:
    """Learners whose profile table lists them in ``group``."""
    marker = f"| **Group** | {group} |"
    return [record for record in iter_learners(data_dir) if marker in record.content]


def find_learner_by_portal_code(data_dir: Path | str, portal_code: str) -> LearnerRecord | None:
    marker = f"| **Portal Code** | {portal_code} |"
    for record in iter_learners(data_dir):
        if marker in record.content:
            return record
    return None
