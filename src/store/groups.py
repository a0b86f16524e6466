"""Group profiles (``groups/{slug}.md``) and roster creation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from src.core.errors import RecordNotFoundError
from src.store.learners import (
    LearnerRecord,
    load_group_learners,
    render_learner_profile,
    write_learner,
)
from src.store.markdown import section_body, table_field
from src.store.paths import random_token, safe_path, slugify, validate_record_id

MEMBER_LINE = re.compile(r"- (.+?) \(`([^)]+)`\)")
LEARNER_SUFFIX_LENGTH = 6

NO_INTERVIEW = "_Not yet interviewed. Use the interview-educator skill to gather context._"
NO_CONSTRAINTS = "_No constraints recorded yet._"


@dataclass
class GroupMember:
    id: str
    name: str


@dataclass
class GroupProfile:
    name: str
    slug: str
    domain: str = ""
    created: str = ""
    members: list[GroupMember] = field(default_factory=list)
    interview_context: str = ""
    constraints: str = ""


@dataclass
class RosterResult:
    """Outcome of loading (or creating) a roster."""

    group: str
    domain: str
    is_new: bool
    group_file: Path
    group_content: str
    learners: list[LearnerRecord]


def _placeholder_to_empty(text: str) -> str:
    return "" if text.startswith("_") and text.endswith("_") else text


def parse_group(content: str) -> GroupProfile:
    name_match = re.search(r"# Group: (.+)", content)
    members = [
        GroupMember(id=m.group(2), name=m.group(1))
        for m in MEMBER_LINE.finditer(section_body(content, "Members"))
    ]
    return GroupProfile(
        name=name_match.group(1).strip() if name_match else "",
        slug=table_field(content, "Slug") or "",
        domain=table_field(content, "Domain") or "",
        created=table_field(content, "Created") or "",
        members=members,
        interview_context=_placeholder_to_empty(section_body(content, "Interview Context")),
        constraints=_placeholder_to_empty(section_body(content, "Constraints")),
    )


def group_path(data_dir: Path | str, group: str) -> Path:
    validate_record_id(group)
    return safe_path(data_dir, "groups", f"{group}.md")


def group_exists(data_dir: Path | str, group: str) -> bool:
    return group_path(data_dir, group).is_file()


def read_group(data_dir: Path | str, group: str) -> tuple[str, GroupProfile]:
    """Raw markdown and parsed profile of a group."""
    try:
        content = group_path(data_dir, group).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise RecordNotFoundError("Group", group) from e
    return content, parse_group(content)


def render_group(name: str, slug: str, domain: str, members: list[GroupMember], created: datetime) -> str:
    member_lines = "\n".join(f"- {m.name} (`{m.id}`)" for m in members) or "_No members yet._"
    return (
        f"# Group: {name}\n\n"
        "| Field | Value |\n"
        "|---|---|\n"
        f"| **Slug** | {slug} |\n"
        f"| **Domain** | {domain} |\n"
        f"| **Created** | {created.isoformat()} |\n"
        f"| **Member count** | {len(members)} |\n\n"
        f"## Members\n\n{member_lines}\n\n"
        f"## Interview Context\n\n{NO_INTERVIEW}\n\n"
        f"## Constraints\n\n{NO_CONSTRAINTS}\n"
    )


def create_group(
    data_dir: Path | str,
    name: str,
    domain: str,
    members: list[str] | None = None,
    now: datetime | None = None,
) -> RosterResult:
    """
    Load a group, creating it (and a learner profile per member) if absent.

    Member ids are ``{slug(name)}-{6 random chars}``. An existing group is
    returned unchanged and the ``members`` argument is ignored.
    """
    now = now or datetime.now(timezone.utc)
    slug = slugify(name)
    path = group_path(data_dir, slug)
    path.parent.mkdir(parents=True, exist_ok=True)

    is_new = not path.is_file()
    if is_new:
        created: list[GroupMember] = []
        for member_name in members or []:
            learner_id = f"{slugify(member_name)}-{random_token(LEARNER_SUFFIX_LENGTH)}"
            write_learner(
                data_dir,
                learner_id,
                render_learner_profile(learner_id, member_name, slug, domain, now),
            )
            created.append(GroupMember(id=learner_id, name=member_name))

        content = render_group(name, slug, domain, created, now)
        path.write_text(content, encoding="utf-8")
        logger.info(f"Created group '{slug}' with {len(created)} members")
    else:
        content = path.read_text(encoding="utf-8")
        logger.debug(f"Loaded existing group '{slug}'")

    return RosterResult(
        group=slug,
        domain=domain,
        is_new=is_new,
        group_file=path,
        group_content=content,
        learners=load_group_learners(data_dir, slug),
    )
