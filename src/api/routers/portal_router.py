"""Read-only learner portal."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query

from config import Settings, get_settings
from src.api.deps import get_data_dir, http_error
from src.core.errors import PedagogyError
from src.learning.portal import get_portal_view
from src.store.paths import validate_record_id

router = APIRouter()


@router.get("/{portal_code}")
def get_portal(
    portal_code: str,
    language: str = Query("en"),
    audience: Literal["learner", "parent", "employer", "general"] = Query("learner"),
    data_dir: Path = Depends(get_data_dir),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    try:
        validate_record_id(portal_code)
        return get_portal_view(
            data_dir,
            portal_code,
            language=language,
            audience=audience,
            frontend_url=settings.frontend_url,
        )
    except PedagogyError as e:
        raise http_error(e)
