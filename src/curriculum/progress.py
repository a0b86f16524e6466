"""Curriculum progress: parse curriculum documents and record taught sessions."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from src.core.errors import GraphValidationError, PathTraversalError, RecordNotFoundError
from src.curriculum.models import AdvanceResult, CurriculumSession, Outcome, ParsedCurriculum
from src.store.markdown import set_table_field, table_field
from src.store.paths import safe_path

TITLE = re.compile(r"^# Curriculum:\s*(.+)$", re.MULTILINE)
FIELD_ROW = re.compile(r"^\|\s*\*\*(.+?)\*\*\s*\|\s*(.+?)\s*\|\s*$", re.MULTILINE)
SESSION_HEADING = re.compile(r"^### Session (\d+):\s*(.*)$", re.MULTILINE)
MILESTONE = re.compile(r"\*\*Milestone:\*\*\s*(.*)")
UNSAFE_SLUG_CHARS = re.compile(r"[^a-z0-9-]")


def sanitize_slug(slug: str) -> str:
    cleaned = UNSAFE_SLUG_CHARS.sub("-", slug.lower()).strip("-")
    if not cleaned:
        raise PathTraversalError(f"Invalid curriculum slug: {slug!r}")
    return cleaned


def curriculum_path(data_dir: Path | str, slug: str) -> Path:
    return safe_path(data_dir, "curricula", f"{sanitize_slug(slug)}.md")


def parse_curriculum(markdown: str) -> ParsedCurriculum:
    title = TITLE.search(markdown)
    headings = list(SESSION_HEADING.finditer(markdown))

    sessions = []
    for i, match in enumerate(headings):
        end = headings[i + 1].start() if i + 1 < len(headings) else len(markdown)
        body = markdown[match.end():end]
        milestone = MILESTONE.search(body)
        number = int(match.group(1))
        sessions.append(
            CurriculumSession(
                number=number,
                heading=match.group(2).strip(),
                milestone=milestone.group(1).strip() if milestone else "",
                completed=f"**Session {number} Report:**" in body,
            )
        )

    return ParsedCurriculum(
        title=title.group(1).strip() if title else "",
        fields={m.group(1): m.group(2) for m in FIELD_ROW.finditer(markdown)},
        status=table_field(markdown, "Status") or "",
        sessions=sessions,
    )


def read_curriculum(data_dir: Path | str, slug: str) -> tuple[str, ParsedCurriculum]:
    try:
        markdown = curriculum_path(data_dir, slug).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise RecordNotFoundError("Curriculum", slug) from e
    return markdown, parse_curriculum(markdown)


def list_curricula(data_dir: Path | str) -> list[dict[str, object]]:
    directory = safe_path(data_dir, "curricula")
    if not directory.is_dir():
        return []

    result = []
    for path in sorted(directory.glob("*.md")):
        parsed = parse_curriculum(path.read_text(encoding="utf-8"))
        result.append(
            {
                "slug": path.stem,
                "title": parsed.title,
                "group": parsed.fields.get("Group", ""),
                "domain": parsed.fields.get("Domain", ""),
                "status": parsed.status,
                "sessions": len(parsed.sessions),
            }
        )
    return result


def _adjustments(
    outcome: Outcome,
    completed: int,
    remaining: int,
    struggled: list[str],
) -> list[str]:
    if outcome == "ahead":
        return [
            f"Group completed Session {completed} ahead of schedule.",
            "Recommendation: Compress review segments in upcoming sessions.",
            "Consider pulling forward skills from later sessions to fill available time.",
            "Could potentially finish the curriculum one session early."
            if remaining > 2
            else "Use extra time for deeper practice at higher Bloom's levels.",
        ]

    if outcome == "on_track":
        return [
            f"Session {completed} went as planned.",
            "No curriculum adjustments needed.",
            "Continue with the planned sequence.",
        ]

    if outcome == "behind":
        notes = [
            f"Group fell slightly behind in Session {completed}.",
            "Recommendation: Extend review at the start of the next session to 8-10 minutes.",
        ]
        if struggled:
            notes += [
                f"Skills that need reinforcement: {', '.join(struggled)}",
                "Consider adding scaffolding activities for these skills in the next session.",
            ]
        if remaining >= 2:
            notes.append("If the next session also falls behind, consider deferring the lowest-priority skills.")
        return notes

    # struggled
    notes = [
        f"Group struggled significantly in Session {completed}.",
        "Recommendation: Add a remediation focus to the next session.",
    ]
    if struggled:
        notes += [
            f"Priority remediation skills: {', '.join(struggled)}",
            "Next session should open with 15-20 minutes of guided practice on these skills.",
        ]
    if remaining >= 3:
        notes += [
            "Consider inserting a full remediation session and pushing remaining content back.",
            "Defer the least critical target skills to keep the schedule feasible.",
        ]
    else:
        notes += [
            "With limited sessions remaining, focus on the most critical prerequisite skills.",
            "Advanced target skills may need to be deferred to a follow-up curriculum.",
        ]
    return notes


def advance_curriculum(
    data_dir: Path | str,
    slug: str,
    completed_session: int,
    outcome: Outcome,
    notes: str | None = None,
    skills_confirmed: list[str] | None = None,
    skills_struggled: list[str] | None = None,
    now: datetime | None = None,
) -> AdvanceResult:
    """Mark a session as taught and append outcome-specific adjustments."""
    now = now or datetime.now(timezone.utc)
    skills_confirmed = skills_confirmed or []
    skills_struggled = skills_struggled or []

    markdown, parsed = read_curriculum(data_dir, slug)
    total = len(parsed.sessions)
    if completed_session < 1 or completed_session > total:
        raise GraphValidationError(
            f"Session {completed_session} does not exist in this curriculum ({total} sessions total)"
        )

    markdown = set_table_field(markdown, "Status", f"active (session {completed_session}/{total} completed)")

    milestone = re.compile(
        rf"(### Session {completed_session}:.*?\*\*Milestone:\*\*[^\n]*)", re.DOTALL
    )
    report = (
        f"\n\n**Session {completed_session} Report:**\n"
        f"- **Outcome:** {outcome}\n"
        f"- **Skills confirmed:** {', '.join(skills_confirmed) or 'none recorded'}\n"
        f"- **Skills struggled:** {', '.join(skills_struggled) or 'none'}\n"
        f"- **Notes:** {notes or 'none'}"
    )
    markdown = milestone.sub(lambda m: m.group(1) + report, markdown, count=1)

    remaining = total - completed_session
    adjustments = _adjustments(outcome, completed_session, remaining, skills_struggled)
    markdown = (
        markdown.rstrip("\n")
        + f"\n\n## Session {completed_session} Adjustment Log\n\n"
        + f"**Date:** {now.isoformat()}\n**Outcome:** {outcome}\n\n"
        + "\n".join(f"- {a}" for a in adjustments)
        + "\n"
    )

    path = curriculum_path(data_dir, slug)
    path.write_text(markdown, encoding="utf-8")
    logger.info(f"Curriculum '{path.stem}': session {completed_session}/{total} marked {outcome}")

    suffix = {
        "struggled": " Remediation recommendations added.",
        "ahead": " Compression recommendations added.",
    }.get(outcome, "")
    return AdvanceResult(
        slug=path.stem,
        completed_session=completed_session,
        total_sessions=total,
        remaining_sessions=remaining,
        outcome=outcome,
        adjustments=adjustments,
        skills_confirmed=skills_confirmed,
        skills_struggled=skills_struggled,
        notes=notes or "",
        file=path,
        message=f"Curriculum updated. Session {completed_session}/{total} marked as {outcome}.{suffix}",
    )
