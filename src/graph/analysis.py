"""Structural checks and orderings over a domain skill graph."""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Iterable

from src.store.domains import MAX_EDGES, MAX_SKILLS, Edge, SkillGraph, bloom_rank

WHITE, GRAY, BLACK = 0, 1, 2


@dataclass
class ValidationReport:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _adjacency(edges: Iterable[Edge]) -> dict[str, list[str]]:
    adjacency: dict[str, list[str]] = {}
    for edge in edges:
        adjacency.setdefault(edge.source, []).append(edge.target)
    return adjacency


def detect_cycles(graph: SkillGraph) -> list[list[str]]:
    """
    Find dependency cycles with a colour-marking DFS.

    Each cycle is returned as a path whose last element repeats the first,
    e.g. ``["a", "b", "c", "a"]``.
    """
    adjacency = _adjacency(graph.edges)
    color = {s.id: WHITE for s in graph.skills}
    cycles: list[list[str]] = []
    stack: list[str] = []

    # Iterative DFS: (node, iterator over its successors)
    for start in graph.skills:
        if color[start.id] != WHITE:
            continue
        color[start.id] = GRAY
        stack.append(start.id)
        frames = [(start.id, iter(adjacency.get(start.id, [])))]

        while frames:
            node, successors = frames[-1]
            advanced = False
            for nxt in successors:
                state = color.get(nxt)
                if state == GRAY:
                    cycles.append(stack[stack.index(nxt):] + [nxt])
                elif state == WHITE:
                    color[nxt] = GRAY
                    stack.append(nxt)
                    frames.append((nxt, iter(adjacency.get(nxt, []))))
                    advanced = True
                    break
            if not advanced:
                frames.pop()
                stack.pop()
                color[node] = BLACK

    return cycles


def find_orphans(graph: SkillGraph) -> list[str]:
    """Skills that appear in no edge at all."""
    connected = {e.source for e in graph.edges} | {e.target for e in graph.edges}
    return [s.id for s in graph.skills if s.id not in connected]


def find_unreachable(graph: SkillGraph) -> list[str]:
    """Skills with no path from a root (a skill without incoming prerequisite edges)."""
    has_incoming = {e.target for e in graph.edges if e.type == "prerequisite"}
    roots = [s.id for s in graph.skills if s.id not in has_incoming]
    adjacency = _adjacency(graph.edges)

    reachable = set(roots)
    queue = deque(roots)
    while queue:
        for nxt in adjacency.get(queue.popleft(), []):
            if nxt not in reachable:
                reachable.add(nxt)
                queue.append(nxt)

    return [s.id for s in graph.skills if s.id not in reachable]


def find_dangling_edges(graph: SkillGraph) -> list[Edge]:
    ids = {s.id for s in graph.skills}
    return [e for e in graph.edges if e.source not in ids or e.target not in ids]


def validate_graph(graph: SkillGraph) -> ValidationReport:
    errors: list[str] = []
    warnings: list[str] = []

    if len(graph.skills) > MAX_SKILLS:
        errors.append(f"Too many skills: {len(graph.skills)} (max {MAX_SKILLS})")
    if len(graph.edges) > MAX_EDGES:
        errors.append(f"Too many edges: {len(graph.edges)} (max {MAX_EDGES})")

    counts = Counter(s.id for s in graph.skills)
    duplicates = sorted(skill_id for skill_id, n in counts.items() if n > 1)
    if duplicates:
        errors.append(f"Duplicate skill IDs: {', '.join(duplicates)}")

    for edge in find_dangling_edges(graph):
        if edge.source not in counts:
            errors.append(f'Edge references unknown source skill: "{edge.source}"')
        if edge.target not in counts:
            errors.append(f'Edge references unknown target skill: "{edge.target}"')

    for edge in graph.edges:
        if edge.source == edge.target:
            errors.append(f'Self-loop: "{edge.source}" depends on itself')

    for cycle in detect_cycles(graph):
        errors.append(f"Circular dependency: {' -> '.join(cycle)}")

    for skill in graph.skills:
        for dep in skill.dependencies:
            if dep not in counts:
                errors.append(f'Skill "{skill.id}" lists unknown dependency "{dep}"')

    seen_edges: set[tuple[str, str]] = set()
    for edge in graph.edges:
        key = (edge.source, edge.target)
        if key in seen_edges:
            warnings.append(f"Duplicate edge: {edge.source} -> {edge.target}")
        seen_edges.add(key)

    orphans = find_orphans(graph)
    if orphans:
        warnings.append(f"Orphan skills (no connections): {', '.join(orphans)}")

    # Reachability is meaningless while the graph has structural errors
    if not errors:
        unreachable = find_unreachable(graph)
        if unreachable:
            warnings.append(f"Unreachable skills (no path from roots): {', '.join(unreachable)}")

    for edge in graph.edges:
        if edge.type != "prerequisite":
            continue
        source, target = graph.skill(edge.source), graph.skill(edge.target)
        if source and target and bloom_rank(source.bloom_level) > bloom_rank(target.bloom_level):
            warnings.append(
                f"Bloom's regression: {source.id} ({source.bloom_level}) is a prerequisite "
                f"for {target.id} ({target.bloom_level})"
            )

    return ValidationReport(valid=not errors, errors=errors, warnings=warnings)


def _bloom_key(graph: SkillGraph, skill_id: str) -> tuple[int, str]:
    skill = graph.skill(skill_id)
    return bloom_rank(skill.bloom_level if skill else None), skill_id


def topological_sort(graph: SkillGraph, skill_ids: Iterable[str]) -> list[str]:
    """
    Order a subset of skills so prerequisites come first (Kahn's algorithm).

    Only edges with both ends in the subset count. Among ready skills the
    lower Bloom level goes first. Skills caught in a cycle are appended at
    the end in Bloom order.
    """
    subset = list(dict.fromkeys(skill_ids))
    members = set(subset)
    in_degree = {skill_id: 0 for skill_id in subset}
    successors: dict[str, list[str]] = {skill_id: [] for skill_id in subset}

    for edge in graph.edges:
        if edge.source in members and edge.target in members and edge.source != edge.target:
            successors[edge.source].append(edge.target)
            in_degree[edge.target] += 1

    ready = sorted((s for s in subset if in_degree[s] == 0), key=lambda s: _bloom_key(graph, s))
    ordered: list[str] = []
    while ready:
        current = ready.pop(0)
        ordered.append(current)
        for nxt in successors[current]:
            in_degree[nxt] -= 1
            if in_degree[nxt] == 0:
                ready.append(nxt)
        ready.sort(key=lambda s: _bloom_key(graph, s))

    if len(ordered) < len(subset):
        placed = set(ordered)
        ordered.extend(sorted((s for s in subset if s not in placed), key=lambda s: _bloom_key(graph, s)))

    return ordered


def critical_path_length(graph: SkillGraph, skill_ids: Iterable[str]) -> int:
    """Number of skills on the longest prerequisite chain within the subset."""
    members = set(skill_ids)
    prerequisites: dict[str, list[str]] = {s: [] for s in members}
    for edge in graph.edges:
        if edge.source in members and edge.target in members:
            prerequisites[edge.target].append(edge.source)

    memo: dict[str, int] = {}
    in_progress: set[str] = set()

    def longest(skill_id: str) -> int:
        if skill_id in memo:
            return memo[skill_id]
        if skill_id in in_progress:
            return 0  # back edge of a cycle
        in_progress.add(skill_id)
        length = 1 + max((longest(p) for p in prerequisites[skill_id]), default=0)
        in_progress.discard(skill_id)
        memo[skill_id] = length
        return length

    return max((longest(s) for s in members), default=0)
