"""
Helpers for the markdown record format.

Records are plain markdown with a two-column field table
(``| **Field** | value |``) and ``## Section`` blocks. These helpers read
and rewrite individual fields and sections without disturbing the rest
of the document.
"""

from __future__ import annotations

import re

_SECTION_HEADING = re.compile(r"^## (.+?)\s*$", re.MULTILINE)


def _field_pattern(name: str) -> re.Pattern[str]:
    return re.compile(r"\|\s*\*\*" + re.escape(name) + r"\*\*\s*\|\s*(.+?)\s*\|")


def table_field(content: str, name: str) -> str | None:
    """Return the value of a ``| **name** | value |`` row, if present."""
    match = _field_pattern(name).search(content)
    return match.group(1).strip() if match else None


def set_table_field(content: str, name: str, value: str) -> str:
    """Rewrite the first ``| **name** | ... |`` row; content is unchanged if absent."""
    return _field_pattern(name).sub(
        lambda _: f"| **{name}** | {value} |", content, count=1
    )


def _section_span(content: str, title: str) -> tuple[int, int, int] | None:
    """(heading start, body start, body end) of a ``## title`` section."""
    for match in _SECTION_HEADING.finditer(content):
        if match.group(1).strip() != title:
            continue
        body_start = match.end()
        following = _SECTION_HEADING.search(content, body_start)
        body_end = following.start() if following else len(content)
        return match.start(), body_start, body_end
    return None


def has_section(content: str, title: str) -> bool:
    return _section_span(content, title) is not None


def section_body(content: str, title: str) -> str:
    """Text under ``## title`` up to the next ``## `` heading ('' if missing)."""
    span = _section_span(content, title)
    if span is None:
        return ""
    _, start, end = span
    return content[start:end].strip("\n")


def replace_section(
    content: str,
    title: str,
    body: str,
    insert_before: str | None = None,
) -> str:
    """
    Replace the body of ``## title``, leaving every other section alone.

    When the section does not exist it is inserted before ``## insert_before``
    (if that section exists) or appended at the end of the document.
    """
    block = f"## {title}\n\n{body.strip()}\n\n"
    span = _section_span(content, title)
    if span is not None:
        heading_start, _, body_end = span
        tail = content[body_end:]
        if not tail:
            block = block.rstrip("\n") + "\n"
        return content[:heading_start] + block + tail

    if insert_before is not None:
        anchor = _section_span(content, insert_before)
        if anchor is not None:
            return content[: anchor[0]] + block + content[anchor[0]:]

    return content.rstrip("\n") + "\n\n" + block.rstrip("\n") + "\n"


def bullet_lines(body: str) -> list[str]:
    """Lines of a section body that are ``- `` bullets, without the marker."""
    return [line[2:].strip() for line in body.splitlines() if line.startswith("- ")]
