"""
Skill-dependency inference.

If a learner demonstrates a skill at confidence ``c``, each of its
prerequisites is inferred at ``c * edge.confidence``, and so on down the
graph. Multi-hop inference decays multiplicatively; where several paths
reach the same prerequisite, the strongest one wins.

Propagation is best-first: a max-heap keyed on confidence expands the most
confident frontier node first, and a node is only re-expanded when a path
strictly improves its best known confidence (or, under a depth bound,
reaches it in fewer hops). Since confidences never grow along an edge,
this terminates on cyclic graphs.
"""

from __future__ import annotations

import heapq
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from src.store.domains import Skill, SkillGraph


@dataclass(frozen=True)
class InferredSkill:
    skill_id: str
    confidence: float


@dataclass(frozen=True)
class PrerequisiteHit:
    id: str
    confidence: float
    depth: int


@dataclass
class InferencePath:
    id: str
    confidence: float
    path: list[str] = field(default_factory=list)


def round_confidence(value: float) -> float:
    """Round to two decimals, halves rounding up (0.425 -> 0.43)."""
    # Nudge by a tiny epsilon so binary representation error (0.425 is
    # stored as 0.42499999...) does not turn a half into a round-down.
    return math.floor(value * 100 + 0.5 + 1e-9) / 100


def _dominated(labels: list[tuple[float, int]], confidence: float, depth: int) -> bool:
    return any(c >= confidence and d <= depth for c, d in labels)


def _propagate(
    graph: SkillGraph,
    seeds: Mapping[str, float],
    max_depth: int | None = None,
    min_confidence: float = 0.0,
) -> tuple[dict[str, float], dict[str, list[str]]]:
    """
    Best-first confidence propagation; returns best confidences and paths.

    Each node keeps its non-dominated (confidence, depth) labels. Without a
    depth bound every label sits at depth 0, so only a strictly higher
    confidence re-expands a node. With a bound, a weaker but shallower path
    is still expanded because it can reach prerequisites the stronger,
    deeper one cannot.
    """
    best: dict[str, float] = dict(seeds)
    paths: dict[str, list[str]] = {skill_id: [skill_id] for skill_id in seeds}
    labels: dict[str, list[tuple[float, int]]] = {skill_id: [(conf, 0)] for skill_id, conf in seeds.items()}

    # Entries are (-confidence, depth, skill_id); heapq is a min-heap
    heap = [(-conf, 0, skill_id) for skill_id, conf in seeds.items()]
    heapq.heapify(heap)

    while heap:
        neg_conf, depth, skill_id = heapq.heappop(heap)
        confidence = -neg_conf
        label_depth = depth if max_depth is not None else 0
        if (confidence, label_depth) not in labels.get(skill_id, []):
            continue  # stale entry, dominated by a label found after this was pushed
        if max_depth is not None and depth >= max_depth:
            continue

        for edge in graph.prerequisite_edges(skill_id):
            new_conf = round_confidence(confidence * edge.confidence)
            if new_conf <= 0 or new_conf < min_confidence:
                continue
            new_depth = depth + 1 if max_depth is not None else 0
            existing = labels.get(edge.source, [])
            if _dominated(existing, new_conf, new_depth):
                continue

            labels[edge.source] = [
                (c, d) for c, d in existing if not (new_conf >= c and new_depth <= d)
            ] + [(new_conf, new_depth)]
            if new_conf > best.get(edge.source, 0.0):
                best[edge.source] = new_conf
                paths[edge.source] = paths[skill_id] + [edge.source]
            heapq.heappush(heap, (-new_conf, depth + 1, edge.source))

    return best, paths


def _merge_seeds(demonstrated: Iterable[tuple[str, float]]) -> dict[str, float]:
    seeds: dict[str, float] = {}
    for skill_id, confidence in demonstrated:
        seeds[skill_id] = max(seeds.get(skill_id, 0.0), confidence)
    return seeds


def run_dependency_inference(
    graph: SkillGraph,
    demonstrated: Iterable[tuple[str, float]],
    max_depth: int | None = None,
    min_confidence: float = 0.0,
) -> list[InferredSkill]:
    """
    Infer prerequisite skills from demonstrated (skill_id, confidence) pairs.

    Args:
        graph: Domain skill graph
        demonstrated: Demonstrated skills; repeated ids keep their highest confidence
        max_depth: Maximum edges walked from a demonstrated skill (None = unbounded)
        min_confidence: Inferred values below this are dropped and not propagated

    Returns:
        Inferred skills that were not themselves demonstrated, most confident
        first, ties broken by skill id.
    """
    seeds = _merge_seeds(demonstrated)
    if not seeds:
        return []

    best, _ = _propagate(graph, seeds, max_depth, min_confidence)
    inferred = [
        InferredSkill(skill_id=skill_id, confidence=conf)
        for skill_id, conf in best.items()
        if skill_id not in seeds
    ]
    inferred.sort(key=lambda s: (-s.confidence, s.skill_id))
    return inferred


def find_prerequisites(graph: SkillGraph, skill_id: str) -> list[PrerequisiteHit]:
    """All transitive prerequisites in BFS discovery order."""
    result: list[PrerequisiteHit] = []
    visited = {skill_id}
    queue: deque[PrerequisiteHit] = deque([PrerequisiteHit(skill_id, 1.0, 0)])

    while queue:
        current = queue.popleft()
        for edge in graph.prerequisite_edges(current.id):
            if edge.source in visited:
                continue
            visited.add(edge.source)
            hit = PrerequisiteHit(
                id=edge.source,
                confidence=round_confidence(current.confidence * edge.confidence),
                depth=current.depth + 1,
            )
            result.append(hit)
            queue.append(hit)

    return result


def infer_from_demonstration(graph: SkillGraph, skill_id: str) -> list[InferencePath]:
    """Prerequisites implied by demonstrating one skill, with their best paths."""
    best, paths = _propagate(graph, {skill_id: 1.0})
    result = [
        InferencePath(id=other, confidence=conf, path=paths[other])
        for other, conf in best.items()
        if other != skill_id
    ]
    result.sort(key=lambda p: (-p.confidence, p.id))
    return result


def list_by_level(graph: SkillGraph, bloom_level: str) -> list[Skill]:
    level = bloom_level.lower()
    return [s for s in graph.skills if s.bloom_level.lower() == level]
