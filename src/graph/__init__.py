"""
Graph: skill-dependency inference and structural analysis.

- inference: confidence propagation from demonstrated skills to prerequisites
- analysis: cycle/orphan/reachability checks, ordering and critical path
"""

from src.graph.analysis import (
    ValidationReport,
    critical_path_length,
    detect_cycles,
    topological_sort,
    validate_graph,
)
from src.graph.inference import (
    InferencePath,
    InferredSkill,
    PrerequisiteHit,
    find_prerequisites,
    infer_from_demonstration,
    list_by_level,
    round_confidence,
    run_dependency_inference,
)

__all__ = [
    "ValidationReport",
    "critical_path_length",
    "detect_cycles",
    "topological_sort",
    "validate_graph",
    "InferencePath",
    "InferredSkill",
    "PrerequisiteHit",
    "find_prerequisites",
    "infer_from_demonstration",
    "list_by_level",
    "round_confidence",
    "run_dependency_inference",
]
