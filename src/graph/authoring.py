"""
Domain authoring: create a skill graph or apply edits to an existing one.

Both paths assemble the complete graph in memory and run the structural
validator over it; nothing is written while the graph has errors.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from loguru import logger
from pydantic import ValidationError

from src.core.errors import GraphValidationError, RecordNotFoundError
from src.graph.analysis import ValidationReport, validate_graph
from src.store.domains import (
    BLOOM_LEVELS,
    DEFAULT_EDGE_CONFIDENCE,
    SKILL_ID_PATTERN,
    SkillGraph,
    domain_exists,
    load_documents,
    load_manifest,
    save_domain,
)

MIN_SKILLS = 3
MIN_EDGES = 2
MIN_LABEL_LENGTH = 5
DOMAIN_VERSION = "1.0.0"

INVALID_GRAPH_MESSAGE = "Domain graph has errors that must be fixed before saving."


@dataclass
class AuthoringResult:
    domain: str
    stats: dict[str, Any]
    warnings: list[str] = field(default_factory=list)
    changes: list[str] = field(default_factory=list)

    @property
    def change_description(self) -> str:
        return "; ".join(self.changes) if self.changes else "No changes"


def compute_domain_stats(graph: SkillGraph) -> dict[str, Any]:
    """Counts, Bloom's distribution and the root/leaf skills of a graph."""
    distribution: dict[str, int] = {}
    for level in BLOOM_LEVELS:
        count = sum(1 for s in graph.skills if s.bloom_level == level)
        if count:
            distribution[level] = count

    prerequisites = [e for e in graph.edges if e.type == "prerequisite"]
    has_prereq = {e.target for e in prerequisites}
    is_prereq = {e.source for e in prerequisites}
    return {
        "totalSkills": len(graph.skills),
        "totalEdges": len(graph.edges),
        "bloomDistribution": distribution,
        "rootSkills": [s.id for s in graph.skills if s.id not in has_prereq],
        "leafSkills": [s.id for s in graph.skills if s.id not in is_prereq],
    }


def _build_graph(domain: str, skills: list[dict[str, Any]], edges: list[dict[str, Any]]) -> SkillGraph:
    try:
        return SkillGraph(domain=domain, skills=skills, edges=edges)
    except ValidationError as e:
        raise GraphValidationError(
            f"Skill graph for domain '{domain}' is malformed",
            {"errors": e.errors(include_url=False)},
        ) from e


def _require_valid(graph: SkillGraph) -> ValidationReport:
    report = validate_graph(graph)
    if not report.valid:
        raise GraphValidationError(
            INVALID_GRAPH_MESSAGE, {"errors": report.errors, "warnings": report.warnings}
        )
    return report


def _documents(graph: SkillGraph, description: str, version: str) -> tuple[dict[str, Any], dict[str, Any]]:
    skills_data = {
        "domain": graph.domain,
        "version": version,
        "description": description,
        "skills": [s.model_dump() for s in graph.skills],
    }
    deps_data = {
        "domain": graph.domain,
        "version": version,
        "description": (
            f"Directed dependency edges between {graph.domain} skills. "
            "Source is the prerequisite; target is the dependent skill."
        ),
        "edges": [e.model_dump() for e in graph.edges],
    }
    return skills_data, deps_data


def _manifest_stats(stats: dict[str, Any]) -> dict[str, Any]:
    return {
        "skills": stats["totalSkills"],
        "dependencies": stats["totalEdges"],
        "bloomLevels": stats["bloomDistribution"],
    }


def create_domain(
    data_dir: Path | str,
    domain: str,
    skills: list[dict[str, Any]],
    edges: list[dict[str, Any]],
    description: str = "",
    overwrite: bool = False,
    now: datetime | None = None,
) -> AuthoringResult:
    """
    Write a new domain graph after validating it.

    Raises GraphValidationError when the input is too small, malformed or
    structurally invalid, or when the domain exists and ``overwrite`` is off.
    """
    now = now or datetime.now(timezone.utc)
    if not re.match(SKILL_ID_PATTERN, domain):
        raise GraphValidationError(f"Domain name '{domain}' must be kebab-case")
    if len(skills) < MIN_SKILLS:
        raise GraphValidationError(f"A domain needs at least {MIN_SKILLS} skills (got {len(skills)})")
    if len(edges) < MIN_EDGES:
        raise GraphValidationError(f"A domain needs at least {MIN_EDGES} edges (got {len(edges)})")
    short = [s.get("id", "?") for s in skills if len(s.get("label") or "") < MIN_LABEL_LENGTH]
    if short:
        raise GraphValidationError(
            f"Skill labels must be at least {MIN_LABEL_LENGTH} characters: {', '.join(short)}"
        )
    if domain_exists(data_dir, domain) and not overwrite:
        raise GraphValidationError(f"Domain '{domain}' already exists. Set overwrite to replace it.")

    graph = _build_graph(domain, skills, edges)
    report = _require_valid(graph)
    stats = compute_domain_stats(graph)

    skills_data, deps_data = _documents(graph, description, DOMAIN_VERSION)
    manifest = {
        "domain": domain,
        "version": DOMAIN_VERSION,
        "description": description,
        "createdAt": now.isoformat(),
        "updatedAt": now.isoformat(),
        "stats": _manifest_stats(stats),
    }
    save_domain(data_dir, domain, skills_data, deps_data, manifest)
    logger.info(f"Created domain '{domain}': {stats['totalSkills']} skills, {stats['totalEdges']} edges")
    return AuthoringResult(domain=domain, stats=stats, warnings=report.warnings)


def _dependency_edge(source: str, target: str) -> dict[str, Any]:
    return {"source": source, "target": target, "confidence": DEFAULT_EDGE_CONFIDENCE, "type": "prerequisite"}


def _add_dependency(skills: list[dict[str, Any]], target: str, source: str) -> None:
    for skill in skills:
        if skill.get("id") == target:
            deps = skill.setdefault("dependencies", [])
            if source not in deps:
                deps.append(source)


def _drop_dependency(skills: list[dict[str, Any]], target: str, source: str) -> None:
    for skill in skills:
        if skill.get("id") == target and source in skill.get("dependencies", []):
            skill["dependencies"] = [d for d in skill["dependencies"] if d != source]


def update_domain(
    data_dir: Path | str,
    domain: str,
    add_skills: Iterable[dict[str, Any]] = (),
    remove_skills: Iterable[str] = (),
    modify_skills: Iterable[dict[str, Any]] = (),
    add_edges: Iterable[dict[str, Any]] = (),
    remove_edges: Iterable[dict[str, Any]] = (),
    now: datetime | None = None,
) -> AuthoringResult:
    """
    Apply skill and edge edits to an existing domain.

    Operations run in order: add skills, remove skills, modify skills, add
    edges, remove edges. Adding an existing skill id or edge pair is skipped.
    A skill's ``dependencies`` and its incoming prerequisite edges are kept
    in step. The result is validated as a whole before it is saved.
    """
    now = now or datetime.now(timezone.utc)
    skills_data, deps_data = load_documents(data_dir, domain)
    skills: list[dict[str, Any]] = [dict(s) for s in skills_data.get("skills", [])]
    edges: list[dict[str, Any]] = [dict(e) for e in deps_data.get("edges", [])]
    changes: list[str] = []

    def skill_ids() -> set[str]:
        return {s.get("id") for s in skills}

    def edge_pairs() -> set[tuple[str, str]]:
        return {(e.get("source"), e.get("target")) for e in edges}

    added = []
    for entry in add_skills:
        if entry.get("id") in skill_ids():
            continue
        skill = dict(entry)
        skill["dependencies"] = list(entry.get("dependencies") or [])
        skills.append(skill)
        pairs = edge_pairs()
        for dep in skill["dependencies"]:
            if (dep, skill["id"]) not in pairs:
                edges.append(_dependency_edge(dep, skill["id"]))
        added.append(skill["id"])
    if added:
        changes.append(f"Added skills: {', '.join(added)}")

    doomed = set(remove_skills) & skill_ids()
    if doomed:
        skills = [s for s in skills if s.get("id") not in doomed]
        edges = [e for e in edges if e.get("source") not in doomed and e.get("target") not in doomed]
        for skill in skills:
            skill["dependencies"] = [d for d in skill.get("dependencies", []) if d not in doomed]
        changes.append(f"Removed skills: {', '.join(sorted(doomed))}")

    modified = []
    for patch in modify_skills:
        skill_id = patch.get("id")
        skill = next((s for s in skills if s.get("id") == skill_id), None)
        if skill is None:
            raise RecordNotFoundError("Skill", str(skill_id))
        for key in ("label", "bloom_level", "assessable"):
            if patch.get(key) is not None:
                skill[key] = patch[key]
        if patch.get("dependencies") is not None:
            skill["dependencies"] = list(patch["dependencies"])
            edges = [
                e for e in edges
                if not (e.get("target") == skill_id and e.get("type", "prerequisite") == "prerequisite")
            ]
            edges.extend(_dependency_edge(dep, skill_id) for dep in skill["dependencies"])
        modified.append(skill_id)
    if modified:
        changes.append(f"Modified skills: {', '.join(modified)}")

    new_edges = 0
    for entry in add_edges:
        if (entry.get("source"), entry.get("target")) in edge_pairs():
            continue
        edge = dict(entry)
        edges.append(edge)
        if edge.get("type", "prerequisite") == "prerequisite":
            _add_dependency(skills, edge["target"], edge["source"])
        new_edges += 1
    if new_edges:
        changes.append(f"Added {new_edges} edge(s)")

    dropped = 0
    for entry in remove_edges:
        pair = (entry.get("source"), entry.get("target"))
        before = len(edges)
        edges = [e for e in edges if (e.get("source"), e.get("target")) != pair]
        if len(edges) < before:
            _drop_dependency(skills, pair[1], pair[0])
            dropped += before - len(edges)
    if dropped:
        changes.append(f"Removed {dropped} edge(s)")

    graph = _build_graph(domain, skills, edges)
    report = _require_valid(graph)
    stats = compute_domain_stats(graph)

    skills_out, deps_out = _documents(
        graph,
        skills_data.get("description", ""),
        skills_data.get("version", DOMAIN_VERSION),
    )
    manifest = load_manifest(data_dir, domain)
    if manifest is not None:
        manifest["stats"] = _manifest_stats(stats)
        manifest["updatedAt"] = now.isoformat()
    save_domain(data_dir, domain, skills_out, deps_out, manifest)

    result = AuthoringResult(domain=domain, stats=stats, warnings=report.warnings, changes=changes)
    logger.info(f"Updated domain '{domain}': {result.change_description}")
    return result
