"""
Core Module - Shared infrastructure for the pedagogy engine.

Components:
- errors: Exception hierarchy raised by services and mapped by the API/CLI
- logging: Loguru sink configuration
"""

from src.core.errors import (
    AgentRuntimeError,
    GraphValidationError,
    PathTraversalError,
    PedagogyError,
    RecordNotFoundError,
)

__all__ = [
    "PedagogyError",
    "RecordNotFoundError",
    "PathTraversalError",
    "GraphValidationError",
    "AgentRuntimeError",
]
