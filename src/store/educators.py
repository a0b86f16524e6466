"""
Educator profiles (``educators/{id}.json``).

A profile tracks how an educator teaches: weighted teaching styles,
strengths and growth areas, per-domain content confidence, preferences,
timing tendencies picked up from debriefs, and session/debrief counters.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from src.core.errors import GraphValidationError, RecordNotFoundError
from src.store.paths import safe_path, validate_record_id

DEFAULT_TEACHING_STYLE = {
    "lecture": 0.2,
    "discussion": 0.2,
    "hands_on": 0.2,
    "socratic": 0.1,
    "project_based": 0.2,
    "demonstration": 0.1,
}

# Nested mappings merged key-by-key on update; everything else is replaced
MERGED_FIELDS = ("content_confidence", "preferences", "timing_patterns")
REPLACED_FIELDS = ("name", "bio", "teaching_style", "strengths", "growth_areas", "growth_nudges")

SUMMARY_TOP_N = 3


class EducatorProfile(BaseModel):
    id: str
    name: str
    bio: str = ""
    created: str
    updated: str
    teaching_style: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_TEACHING_STYLE))
    strengths: list[str] = Field(default_factory=list)
    growth_areas: list[str] = Field(default_factory=list)
    content_confidence: dict[str, Any] = Field(default_factory=dict)
    preferences: dict[str, Any] = Field(default_factory=dict)
    timing_patterns: dict[str, Any] = Field(default_factory=dict)
    growth_nudges: list[str] = Field(default_factory=list)
    session_count: int = 0
    debrief_count: int = 0

    @property
    def top_style(self) -> str | None:
        if not self.teaching_style:
            return None
        return max(self.teaching_style.items(), key=lambda item: item[1])[0]


def educator_path(data_dir: Path | str, educator_id: str) -> Path:
    validate_record_id(educator_id)
    return safe_path(data_dir, "educators", f"{educator_id}.json")


def educator_exists(data_dir: Path | str, educator_id: str) -> bool:
    return educator_path(data_dir, educator_id).is_file()


def load_educator(data_dir: Path | str, educator_id: str) -> EducatorProfile:
    path = educator_path(data_dir, educator_id)
    try:
        return EducatorProfile.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except FileNotFoundError as e:
        raise RecordNotFoundError("Educator profile", educator_id) from e
    except json.JSONDecodeError as e:
        raise GraphValidationError(f"Educator profile '{educator_id}' is not valid JSON: {e}") from e
    except ValidationError as e:
        raise GraphValidationError(
            f"Educator profile '{educator_id}' is malformed",
            {"errors": e.errors(include_url=False)},
        ) from e


def _write(data_dir: Path | str, profile: EducatorProfile) -> None:
    path = educator_path(data_dir, profile.id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(profile.model_dump_json(indent=2) + "\n", encoding="utf-8")


def list_educators(data_dir: Path | str) -> list[dict[str, Any]]:
    """One line per educator; unreadable profiles are skipped with a warning."""
    root = Path(data_dir) / "educators"
    if not root.is_dir():
        return []
    educators = []
    for path in sorted(root.glob("*.json")):
        try:
            profile = load_educator(data_dir, path.stem)
        except GraphValidationError as e:
            logger.warning(f"Skipping educator profile {path.name}: {e}")
            continue
        educators.append(
            {
                "id": profile.id,
                "name": profile.name,
                "bio": profile.bio,
                "session_count": profile.session_count,
                "top_style": profile.top_style,
                "domains": sorted(profile.content_confidence),
            }
        )
    return educators


def educator_summary(profile: EducatorProfile) -> dict[str, Any]:
    total = sum(profile.teaching_style.values()) or 1.0
    ranked = sorted(profile.teaching_style.items(), key=lambda item: item[1], reverse=True)
    return {
        "dominant_styles": [
            {"style": style, "weight": weight, "percentage": round(weight / total * 100)}
            for style, weight in ranked[:SUMMARY_TOP_N]
        ],
        "top_strengths": profile.strengths[:SUMMARY_TOP_N],
        "growth_areas": profile.growth_areas,
        "active_domains": sorted(profile.content_confidence),
        "total_sessions": profile.session_count,
    }


def update_educator(
    data_dir: Path | str,
    educator_id: str,
    updates: dict[str, Any] | None = None,
    increment_sessions: bool = False,
    increment_debriefs: bool = False,
    now: datetime | None = None,
) -> tuple[EducatorProfile, str]:
    """
    Create or update a profile. Returns the profile and ``"created"`` or ``"updated"``.

    ``content_confidence``, ``preferences`` and ``timing_patterns`` are merged
    into the stored mappings; other fields replace the stored value.
    """
    now = now or datetime.now(timezone.utc)
    updates = {k: v for k, v in (updates or {}).items() if v is not None}

    if educator_exists(data_dir, educator_id):
        data = load_educator(data_dir, educator_id).model_dump()
        action = "updated"
    else:
        if not updates.get("name"):
            raise GraphValidationError(f"A name is required to create educator profile '{educator_id}'")
        data = {"id": educator_id, "name": updates["name"], "created": now.isoformat()}
        action = "created"

    for key in REPLACED_FIELDS:
        if key in updates:
            data[key] = updates[key]
    for key in MERGED_FIELDS:
        if key in updates:
            data[key] = {**data.get(key, {}), **updates[key]}
    if increment_sessions:
        data["session_count"] = data.get("session_count", 0) + 1
    if increment_debriefs:
        data["debrief_count"] = data.get("debrief_count", 0) + 1
    data["updated"] = now.isoformat()

    try:
        profile = EducatorProfile.model_validate(data)
    except ValidationError as e:
        raise GraphValidationError(
            f"Educator profile update for '{educator_id}' is invalid",
            {"errors": e.errors(include_url=False)},
        ) from e
    _write(data_dir, profile)
    logger.info(f"Educator profile '{educator_id}' {action}")
    return profile, action
