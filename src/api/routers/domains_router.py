"""
Domain skill graph endpoints.

Endpoints for:
- Listing domains and fetching a full skill graph
- Creating a domain graph and applying edits to one
- Prerequisite chains and inference from a demonstrated skill
- Skills at a Bloom's level
- Structural validation (cycles, dangling edges, orphans)
- Multi-skill dependency inference
- Teaching notes recorded against a domain's skills, and the
  accumulated teaching wisdom (notes plus cross-skill patterns)
"""
from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, Field

from config import Settings, get_settings
from src.api.deps import get_data_dir, http_error
from src.core.errors import PedagogyError
from src.graph.analysis import validate_graph
from src.graph.authoring import create_domain, update_domain
from src.graph.inference import (
    find_prerequisites,
    infer_from_demonstration,
    list_by_level,
    run_dependency_inference,
)
from src.store.domains import (
    BLOOM_LEVELS,
    DEFAULT_EDGE_CONFIDENCE,
    SkillGraph,
    list_domains,
    load_graph,
)
from src.store.teaching_notes import (
    NoteType,
    add_teaching_note,
    query_teaching_notes,
    query_teaching_wisdom,
)

router = APIRouter()


# ========================================
# Request Models
# ========================================


class DemonstratedSkill(BaseModel):
    skill_id: str = Field(..., alias="skillId")
    confidence: float = Field(1.0, ge=0, le=1)

    model_config = {"populate_by_name": True}


class InferRequest(BaseModel):
    """Skills a learner has demonstrated, with optional traversal limits."""

    demonstrated: List[DemonstratedSkill]
    max_depth: Optional[int] = Field(None, ge=0, alias="maxDepth")
    min_confidence: Optional[float] = Field(None, ge=0, le=1, alias="minConfidence")

    model_config = {"populate_by_name": True}


class TeachingNoteRequest(BaseModel):
    skill_id: str = Field(..., alias="skillId")
    note_type: NoteType = Field(..., alias="noteType")
    observation: str = Field(..., min_length=1)
    session_ref: Optional[str] = Field(None, alias="sessionRef")
    context: Optional[Dict[str, Any]] = None

    model_config = {"populate_by_name": True}


class SkillInput(BaseModel):
    id: str
    label: str
    bloom_level: str = Field(..., alias="bloomLevel")
    assessable: bool = True
    dependencies: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class EdgeInput(BaseModel):
    source: str
    target: str
    confidence: float = Field(DEFAULT_EDGE_CONFIDENCE, ge=0.1, le=1.0)
    type: Literal["prerequisite", "corequisite", "recommended"] = "prerequisite"


class CreateDomainRequest(BaseModel):
    domain: str = Field(..., min_length=1)
    description: str = ""
    skills: List[SkillInput]
    edges: List[EdgeInput]
    overwrite: bool = False


class SkillPatch(BaseModel):
    id: str
    label: Optional[str] = None
    bloom_level: Optional[str] = Field(None, alias="bloomLevel")
    assessable: Optional[bool] = None
    dependencies: Optional[List[str]] = None

    model_config = {"populate_by_name": True}


class EdgeRef(BaseModel):
    source: str
    target: str


class UpdateDomainRequest(BaseModel):
    """Edits applied in order: add, remove and modify skills, then add and remove edges."""

    add_skills: List[SkillInput] = Field(default_factory=list, alias="addSkills")
    remove_skills: List[str] = Field(default_factory=list, alias="removeSkills")
    modify_skills: List[SkillPatch] = Field(default_factory=list, alias="modifySkills")
    add_edges: List[EdgeInput] = Field(default_factory=list, alias="addEdges")
    remove_edges: List[EdgeRef] = Field(default_factory=list, alias="removeEdges")

    model_config = {"populate_by_name": True}


def _graph(data_dir: Path, domain: str) -> SkillGraph:
    try:
        return load_graph(data_dir, domain)
    except PedagogyError as e:
        raise http_error(e)


def _require_skill(graph: SkillGraph, skill_id: str) -> None:
    if not graph.has_skill(skill_id):
        raise HTTPException(
            status_code=404,
            detail=f"Skill '{skill_id}' not found in domain '{graph.domain}'",
        )


# ========================================
# Graph Endpoints
# ========================================


@router.get("")
def get_domains(data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    return {"domains": list_domains(data_dir)}


@router.post("")
def post_domain(request: CreateDomainRequest, data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    """Create a domain graph; rejected without writing anything if it has errors."""
    try:
        result = create_domain(
            data_dir,
            request.domain,
            [s.model_dump() for s in request.skills],
            [e.model_dump() for e in request.edges],
            description=request.description,
            overwrite=request.overwrite,
        )
    except PedagogyError as e:
        raise http_error(e)
    return {"saved": True, "domain": result.domain, "stats": result.stats, "warnings": result.warnings}


@router.patch("/{domain}")
def patch_domain(
    domain: str,
    request: UpdateDomainRequest,
    data_dir: Path = Depends(get_data_dir),
) -> dict[str, Any]:
    """Apply skill and edge edits to an existing domain graph."""
    try:
        result = update_domain(
            data_dir,
            domain,
            add_skills=[s.model_dump() for s in request.add_skills],
            remove_skills=request.remove_skills,
            modify_skills=[p.model_dump(exclude_none=True) for p in request.modify_skills],
            add_edges=[e.model_dump() for e in request.add_edges],
            remove_edges=[e.model_dump() for e in request.remove_edges],
        )
    except PedagogyError as e:
        raise http_error(e)
    return {
        "updated": True,
        "domain": result.domain,
        "changeDescription": result.change_description,
        "stats": result.stats,
        "warnings": result.warnings,
    }


@router.get("/{domain}/graph")
def get_graph(domain: str, data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    graph = _graph(data_dir, domain)
    return {
        "domain": domain,
        "skill_count": len(graph.skills),
        "edge_count": len(graph.edges),
        "skills": [s.model_dump() for s in graph.skills],
        "edges": [e.model_dump() for e in graph.edges],
    }


@router.get("/{domain}/prerequisites/{skill_id}")
def get_prerequisites(
    domain: str, skill_id: str, data_dir: Path = Depends(get_data_dir)
) -> dict[str, Any]:
    """All transitive prerequisites of a skill, nearest first."""
    graph = _graph(data_dir, domain)
    _require_skill(graph, skill_id)
    hits = find_prerequisites(graph, skill_id)
    return {
        "skill": graph.skill_summary(skill_id),
        "prerequisites": [
            {**graph.skill_summary(h.id), "confidence": h.confidence, "depth": h.depth} for h in hits
        ],
        "total": len(hits),
    }


@router.get("/{domain}/infer/{skill_id}")
def get_inference(
    domain: str, skill_id: str, data_dir: Path = Depends(get_data_dir)
) -> dict[str, Any]:
    """What demonstrating one skill implies about its prerequisites."""
    graph = _graph(data_dir, domain)
    _require_skill(graph, skill_id)
    paths = infer_from_demonstration(graph, skill_id)
    return {
        "demonstrated": graph.skill_summary(skill_id),
        "inferred": [
            {**graph.skill_summary(p.id), "confidence": p.confidence, "path": p.path} for p in paths
        ],
        "total": len(paths),
    }


@router.get("/{domain}/levels/{level}")
def get_skills_at_level(
    domain: str, level: str, data_dir: Path = Depends(get_data_dir)
) -> dict[str, Any]:
    level = level.lower()
    if level not in BLOOM_LEVELS:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown Bloom's level '{level}'. Expected one of: {', '.join(BLOOM_LEVELS)}",
        )
    graph = _graph(data_dir, domain)
    skills = list_by_level(graph, level)
    return {"level": level, "skills": [s.model_dump() for s in skills], "total": len(skills)}


@router.get("/{domain}/validate")
def get_validation(domain: str, data_dir: Path = Depends(get_data_dir)) -> dict[str, Any]:
    graph = _graph(data_dir, domain)
    return asdict(validate_graph(graph))


@router.post("/{domain}/infer")
def post_inference(
    domain: str,
    request: InferRequest,
    data_dir: Path = Depends(get_data_dir),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Infer prerequisite confidences from several demonstrated skills at once."""
    graph = _graph(data_dir, domain)
    unknown = [d.skill_id for d in request.demonstrated if not graph.has_skill(d.skill_id)]
    if unknown:
        raise HTTPException(
            status_code=400, detail=f"Unknown skills for domain '{domain}': {', '.join(unknown)}"
        )

    config = settings.get_inference_config()
    max_depth = request.max_depth if request.max_depth is not None else config["max_depth"]
    min_confidence = (
        request.min_confidence if request.min_confidence is not None else config["min_confidence"]
    )
    inferred = run_dependency_inference(
        graph,
        [(d.skill_id, d.confidence) for d in request.demonstrated],
        max_depth=max_depth,
        min_confidence=min_confidence,
    )
    return {
        "domain": domain,
        "demonstrated": [d.skill_id for d in request.demonstrated],
        "inferred": [
            {**graph.skill_summary(s.skill_id), "confidence": s.confidence} for s in inferred
        ],
        "total": len(inferred),
    }


# ========================================
# Teaching Notes
# ========================================


@router.get("/{domain}/teaching-notes")
def get_teaching_notes(
    domain: str,
    skill_id: Optional[str] = Query(None, alias="skillId"),
    note_type: Optional[str] = Query(None, alias="noteType"),
    data_dir: Path = Depends(get_data_dir),
) -> dict[str, Any]:
    try:
        notes = query_teaching_notes(data_dir, domain, skill_id=skill_id, note_type=note_type)
    except PedagogyError as e:
        raise http_error(e)
    return {
        "domain": domain,
        "notes": [n.model_dump(by_alias=True) for n in notes],
        "total": len(notes),
    }


@router.post("/{domain}/teaching-notes")
def post_teaching_note(
    domain: str,
    request: TeachingNoteRequest,
    data_dir: Path = Depends(get_data_dir),
) -> dict[str, Any]:
    graph = _graph(data_dir, domain)
    _require_skill(graph, request.skill_id)
    try:
        note, total = add_teaching_note(
            data_dir,
            domain,
            request.skill_id,
            request.note_type,
            request.observation,
            session_ref=request.session_ref,
            context=request.context,
        )
    except PedagogyError as e:
        raise http_error(e)
    logger.info(f"Teaching note {note.id} added to {domain}/{request.skill_id}")
    return {"saved": True, "note": note.model_dump(by_alias=True), "total_notes": total}


@router.get("/{domain}/wisdom")
def get_teaching_wisdom(
    domain: str,
    skill_ids: Optional[List[str]] = Query(None, alias="skillIds"),
    note_types: Optional[List[str]] = Query(None, alias="noteTypes"),
    min_confidence: float = Query(0.0, ge=0, le=1, alias="minConfidence"),
    group_level: Optional[str] = Query(None, alias="groupLevel"),
    include_patterns: bool = Query(True, alias="includePatterns"),
    data_dir: Path = Depends(get_data_dir),
) -> dict[str, Any]:
    """Teaching notes and cross-skill patterns, most confident first."""
    try:
        return query_teaching_wisdom(
            data_dir,
            domain,
            skill_ids=skill_ids,
            note_types=note_types,
            min_confidence=min_confidence,
            group_level=group_level,
            include_patterns=include_patterns,
        )
    except PedagogyError as e:
        raise http_error(e)
