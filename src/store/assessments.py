"""
Assessment sessions (``assessments/{CODE}.md``).

An assessment session is created by an educator and shared with learners as
an access code. Each learner that completes it gets a line under
``## Completed Assessments``.
"""

from __future__ import annotations

import re
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from src.core.errors import RecordNotFoundError
from src.store.markdown import bullet_lines, replace_section, section_body, table_field
from src.store.paths import random_token, safe_path, validate_record_id

CODE_LENGTH = 8
CODE_ALPHABET = string.ascii_uppercase + string.digits

ALL_MEMBERS = "_All group members_"
FULL_DOMAIN = "_Full domain assessment_"
NONE_YET = "_None yet._"
COMPLETED_SECTION = "Completed Assessments"

COMPLETION_LINE = re.compile(r"^- (.+?): Completed (.+?) —(.+)$")


@dataclass
class Completion:
    learner_id: str
    date: str
    summary: str


@dataclass
class AssessmentSession:
    code: str
    group: str
    domain: str
    status: str
    created: str = ""
    context: str = ""
    lesson_context: str = ""
    educator_id: str = ""
    target_skills: list[str] = field(default_factory=list)
    target_learners: list[str] = field(default_factory=list)
    completions: list[Completion] = field(default_factory=list)
    raw: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def targets_all_members(self) -> bool:
        return not self.target_learners

    def completion_for(self, learner_id: str) -> Completion | None:
        return next((c for c in self.completions if c.learner_id == learner_id), None)


def generate_code() -> str:
    return random_token(CODE_LENGTH, CODE_ALPHABET)


def assessment_path(data_dir: Path | str, code: str) -> Path:
    validate_record_id(code)
    return safe_path(data_dir, "assessments", f"{code}.md")


def assessment_exists(data_dir: Path | str, code: str) -> bool:
    return assessment_path(data_dir, code).is_file()


def parse_assessment(content: str) -> AssessmentSession:
    completions = []
    for line in section_body(content, COMPLETED_SECTION).splitlines():
        match = COMPLETION_LINE.match(line)
        if match:
            completions.append(
                Completion(
                    learner_id=match.group(1).strip(),
                    date=match.group(2).strip(),
                    summary=match.group(3).strip(),
                )
            )

    return AssessmentSession(
        code=table_field(content, "Code") or "",
        group=table_field(content, "Group") or "",
        domain=table_field(content, "Domain") or "",
        status=table_field(content, "Status") or "",
        created=table_field(content, "Created") or "",
        context=section_body(content, "Assessment Context"),
        lesson_context=section_body(content, "Lesson Context"),
        educator_id=section_body(content, "Educator"),
        target_skills=bullet_lines(section_body(content, "Target Skills")),
        target_learners=bullet_lines(section_body(content, "Target Learners")),
        completions=completions,
        raw=content,
    )


def read_assessment(data_dir: Path | str, code: str) -> AssessmentSession:
    try:
        content = assessment_path(data_dir, code).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise RecordNotFoundError("Assessment", code) from e
    return parse_assessment(content)


def create_assessment(
    data_dir: Path | str,
    group: str,
    domain: str,
    target_skills: list[str] | None = None,
    learner_ids: list[str] | None = None,
    context: str | None = None,
    educator_id: str | None = None,
    lesson_context: str | None = None,
    now: datetime | None = None,
) -> AssessmentSession:
    """Write a new active assessment session and return it."""
    now = now or datetime.now(timezone.utc)
    code = generate_code()

    optional = ""
    if context:
        optional += f"\n## Assessment Context\n\n{context}\n"
    if educator_id:
        optional += f"\n## Educator\n\n{educator_id}\n"
    if lesson_context:
        optional += f"\n## Lesson Context\n\n{lesson_context}\n"

    skills_body = "\n".join(f"- {s}" for s in target_skills or []) or FULL_DOMAIN
    learners_body = "\n".join(f"- {i}" for i in learner_ids or []) or ALL_MEMBERS

    content = (
        f"# Assessment Session: {code}\n\n"
        "| Field | Value |\n"
        "|---|---|\n"
        f"| **Code** | {code} |\n"
        f"| **Group** | {group} |\n"
        f"| **Domain** | {domain} |\n"
        f"| **Created** | {now.isoformat()} |\n"
        "| **Status** | active |\n"
        f"{optional}\n"
        f"## Target Skills\n\n{skills_body}\n\n"
        f"## Target Learners\n\n{learners_body}\n\n"
        f"## {COMPLETED_SECTION}\n\n{NONE_YET}\n"
    )

    path = assessment_path(data_dir, code)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info(f"Created assessment {code} for group '{group}' ({domain})")
    return parse_assessment(content)


def record_completion(
    data_dir: Path | str,
    code: str,
    learner_id: str,
    summary: str,
    now: datetime | None = None,
) -> AssessmentSession:
    """Append a completion line for a learner."""
    now = now or datetime.now(timezone.utc)
    session = read_assessment(data_dir, code)

    existing = [
        line for line in section_body(session.raw, COMPLETED_SECTION).splitlines()
        if line.strip() and line.strip() != NONE_YET
    ]
    existing.append(f"- {learner_id}: Completed {now.date().isoformat()} — {summary}")
    content = replace_section(session.raw, COMPLETED_SECTION, "\n".join(existing))

    assessment_path(data_dir, code).write_text(content, encoding="utf-8")
    logger.info(f"Recorded completion of {code} by {learner_id}")
    return parse_assessment(content)


def iter_assessments(data_dir: Path | str):
    directory = safe_path(data_dir, "assessments")
    if not directory.is_dir():
        return
    for path in sorted(directory.glob("*.md")):
        yield parse_assessment(path.read_text(encoding="utf-8"))


def assessments_for_learner(
    data_dir: Path | str,
    learner_id: str,
    group: str,
    frontend_url: str,
) -> dict[str, list[dict[str, Any]]]:
    """Completed and pending assessments that target a learner."""
    completed: list[dict[str, Any]] = []
    pending: list[dict[str, Any]] = []

    for session in iter_assessments(data_dir):
        targeted = learner_id in session.target_learners or (
            session.group == group and session.targets_all_members
        )
        if not targeted:
            continue

        completion = session.completion_for(learner_id)
        if completion is not None:
            completed.append(
                {
                    "code": session.code,
                    "domain": session.domain,
                    "date": completion.date,
                    "summary": completion.summary,
                }
            )
        elif session.is_active:
            pending.append(
                {
                    "code": session.code,
                    "domain": session.domain,
                    "description": f"Assessment on {session.domain.replace('-', ' ')}",
                    "assess_url": f"{frontend_url}/assess/{session.code}",
                }
            )

    return {"completed": completed, "pending": pending}


def active_sessions_for_group(data_dir: Path | str, group: str) -> list[AssessmentSession]:
    return [s for s in iter_assessments(data_dir) if s.group == group and s.is_active]
