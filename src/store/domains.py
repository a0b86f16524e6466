"""
Skill graph storage.

A domain lives in ``domains/{domain}/`` as two JSON documents:
``skills.json`` ({"skills": [...]}) and ``dependencies.json`` ({"edges": [...]}),
plus an optional ``manifest.json`` carrying summary stats.
Edges point from a prerequisite (``source``) to the skill that depends on
it (``target``).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field, PrivateAttr, ValidationError, field_validator

from src.core.errors import GraphValidationError, RecordNotFoundError
from src.store.paths import safe_path

BLOOM_LEVELS = (
    "knowledge",
    "comprehension",
    "application",
    "analysis",
    "synthesis",
    "evaluation",
)
BLOOM_ORDER = {level: i for i, level in enumerate(BLOOM_LEVELS)}

DEFAULT_EDGE_CONFIDENCE = 0.85
MAX_SKILLS = 500
MAX_EDGES = 2000

SKILL_ID_PATTERN = r"^[a-z0-9][a-z0-9-]*[a-z0-9]$"


def bloom_rank(level: str | None) -> int:
    """Position of a Bloom's level; unknown levels sort last."""
    return BLOOM_ORDER.get((level or "").lower(), len(BLOOM_LEVELS))


class Skill(BaseModel):
    """A node in a domain's skill graph."""

    id: str = Field(..., pattern=SKILL_ID_PATTERN)
    label: str
    bloom_level: str
    assessable: bool = True
    dependencies: list[str] = Field(default_factory=list)

    @field_validator("bloom_level")
    @classmethod
    def _known_bloom_level(cls, value: str) -> str:
        value = value.lower()
        if value not in BLOOM_ORDER:
            raise ValueError(f"bloom_level must be one of {', '.join(BLOOM_LEVELS)}")
        return value


class Edge(BaseModel):
    """A dependency edge: ``source`` is a prerequisite of ``target``."""

    source: str
    target: str
    confidence: float = Field(DEFAULT_EDGE_CONFIDENCE, ge=0.1, le=1.0)
    type: Literal["prerequisite", "corequisite", "recommended"] = "prerequisite"


class SkillGraph(BaseModel):
    """Skills and dependency edges of one domain, with lookup helpers."""

    domain: str = ""
    skills: list[Skill] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    _skills_by_id: dict[str, Skill] = PrivateAttr(default_factory=dict)
    _edges_by_target: dict[str, list[Edge]] = PrivateAttr(default_factory=dict)
    _edges_by_source: dict[str, list[Edge]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._skills_by_id = {s.id: s for s in self.skills}
        for edge in self.edges:
            self._edges_by_target.setdefault(edge.target, []).append(edge)
            self._edges_by_source.setdefault(edge.source, []).append(edge)

    def skill(self, skill_id: str) -> Skill | None:
        return self._skills_by_id.get(skill_id)

    def has_skill(self, skill_id: str) -> bool:
        return skill_id in self._skills_by_id

    def prerequisite_edges(self, skill_id: str) -> list[Edge]:
        """Edges whose target is skill_id (its direct prerequisites)."""
        return self._edges_by_target.get(skill_id, [])

    def dependent_edges(self, skill_id: str) -> list[Edge]:
        """Edges whose source is skill_id (skills that build on it)."""
        return self._edges_by_source.get(skill_id, [])

    def label_for(self, skill_id: str) -> str:
        skill = self.skill(skill_id)
        return skill.label if skill else skill_id

    def skill_summary(self, skill_id: str) -> dict[str, Any]:
        skill = self.skill(skill_id)
        if skill is None:
            return {"id": skill_id}
        return {"id": skill.id, "label": skill.label, "bloom_level": skill.bloom_level}


def domain_dir(data_dir: Path | str, domain: str) -> Path:
    return safe_path(data_dir, "domains", domain)


def _read_json(path: Path, domain: str) -> dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise RecordNotFoundError("Domain", domain) from e
    except json.JSONDecodeError as e:
        raise GraphValidationError(f"{path.name} for domain '{domain}' is not valid JSON: {e}") from e


def load_graph(data_dir: Path | str, domain: str) -> SkillGraph:
    """Load a domain's skill graph, raising if it is missing or malformed."""
    skills_data, deps_data = load_documents(data_dir, domain)

    try:
        graph = SkillGraph(
            domain=domain,
            skills=skills_data.get("skills", []),
            edges=deps_data.get("edges", []),
        )
    except ValidationError as e:
        raise GraphValidationError(
            f"Skill graph for domain '{domain}' is malformed",
            {"errors": e.errors(include_url=False)},
        ) from e

    logger.debug(f"Loaded domain '{domain}': {len(graph.skills)} skills, {len(graph.edges)} edges")
    return graph


def load_documents(data_dir: Path | str, domain: str) -> tuple[dict[str, Any], dict[str, Any]]:
    """The raw ``skills.json`` and ``dependencies.json`` documents of a domain."""
    directory = domain_dir(data_dir, domain)
    return (
        _read_json(directory / "skills.json", domain),
        _read_json(directory / "dependencies.json", domain),
    )


def load_manifest(data_dir: Path | str, domain: str) -> dict[str, Any] | None:
    path = domain_dir(data_dir, domain) / "manifest.json"
    if not path.exists():
        return None
    return _read_json(path, domain)


def domain_exists(data_dir: Path | str, domain: str) -> bool:
    return (domain_dir(data_dir, domain) / "skills.json").is_file()


def save_domain(
    data_dir: Path | str,
    domain: str,
    skills_data: dict[str, Any],
    deps_data: dict[str, Any],
    manifest_data: dict[str, Any] | None = None,
) -> Path:
    """Write a domain's JSON documents (indent 2, trailing newline)."""
    directory = domain_dir(data_dir, domain)
    directory.mkdir(parents=True, exist_ok=True)

    documents = {"skills.json": skills_data, "dependencies.json": deps_data}
    if manifest_data is not None:
        documents["manifest.json"] = manifest_data

    for filename, payload in documents.items():
        (directory / filename).write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

    logger.info(f"Saved domain '{domain}' to {directory}")
    return directory


def list_domains(data_dir: Path | str) -> list[str]:
    """Domains that have a skills.json."""
    root = Path(data_dir) / "domains"
    if not root.is_dir():
        return []
    return sorted(p.name for p in root.iterdir() if (p / "skills.json").is_file())
