"""Educator notes shared to a learner's portal (``notes/{learner}/{note}.json``)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from src.core.errors import RecordNotFoundError
from src.store.learners import learner_exists
from src.store.paths import random_token, safe_path, validate_record_id

Audience = Literal["learner", "parent", "employer", "general"]

PREVIEW_LENGTH = 200


class PortalNote(BaseModel):
    id: str
    learner_id: str = Field(alias="learnerId")
    group_id: str = Field(alias="groupId")
    created_at: datetime = Field(alias="createdAt")
    content: str
    audience_hint: Audience = Field("general", alias="audienceHint")
    pinned: bool = False

    model_config = {"populate_by_name": True}

    @property
    def preview(self) -> str:
        if len(self.content) > PREVIEW_LENGTH:
            return self.content[:PREVIEW_LENGTH] + "..."
        return self.content


def notes_dir(data_dir: Path | str, learner_id: str) -> Path:
    validate_record_id(learner_id)
    return safe_path(data_dir, "notes", learner_id)


def share_note(
    data_dir: Path | str,
    learner_id: str,
    group_id: str,
    content: str,
    audience_hint: Audience = "general",
    pinned: bool = False,
    now: datetime | None = None,
) -> PortalNote:
    if not learner_exists(data_dir, learner_id):
        raise RecordNotFoundError("Learner profile", learner_id)

    now = now or datetime.now(timezone.utc)
    note = PortalNote(
        id=f"note-{now.date().isoformat()}-{random_token(4)}",
        learner_id=learner_id,
        group_id=group_id,
        created_at=now,
        content=content,
        audience_hint=audience_hint,
        pinned=pinned,
    )

    directory = notes_dir(data_dir, learner_id)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{note.id}.json"
    path.write_text(note.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    logger.info(f"Shared note {note.id} with {learner_id}")
    return note


def load_notes(data_dir: Path | str, learner_id: str) -> list[PortalNote]:
    """Notes for a learner: pinned first, then newest first."""
    directory = notes_dir(data_dir, learner_id)
    if not directory.is_dir():
        return []

    notes: list[PortalNote] = []
    for path in directory.glob("*.json"):
        try:
            notes.append(PortalNote.model_validate(json.loads(path.read_text(encoding="utf-8"))))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Skipping unreadable note {path}: {e}")

    notes.sort(key=lambda n: n.created_at, reverse=True)
    notes.sort(key=lambda n: not n.pinned)
    return notes
