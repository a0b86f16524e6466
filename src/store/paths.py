"""Path safety and identifier helpers for the record store."""

from __future__ import annotations

import re
import secrets
from pathlib import Path

from src.core.errors import PathTraversalError

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# URL-safe alphabet without confusable characters (no i, l, o, 0, 1)
READABLE_ALPHABET = "abcdefghjkmnpqrstuvwxyz23456789"


def safe_path(base: Path | str, *segments: str) -> Path:
    """Resolve segments under base, refusing anything that escapes it."""
    base_resolved = Path(base).resolve()
    resolved = base_resolved.joinpath(*segments).resolve()
    if resolved != base_resolved and base_resolved not in resolved.parents:
        raise PathTraversalError(f"Path traversal detected: {'/'.join(segments)}")
    return resolved


def validate_record_id(record_id: str) -> str:
    """Reject ids that could address files outside their directory."""
    if not record_id or "/" in record_id or "\\" in record_id or ".." in record_id:
        raise PathTraversalError(f"Invalid record id: {record_id!r}")
    return record_id


def slugify(value: str) -> str:
    value = value.strip().lower().replace("'", "").replace("’", "")
    return _NON_ALNUM.sub("-", value).strip("-")


def random_token(length: int, alphabet: str = READABLE_ALPHABET) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))
