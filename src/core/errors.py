"""
Exception hierarchy for the pedagogy engine.

Services raise these; API routers translate them into HTTP status codes
and the CLI prints them before exiting non-zero.
"""

from __future__ import annotations


class PedagogyError(Exception):
    """Base class for all pedagogy engine errors."""


class RecordNotFoundError(PedagogyError):
    """A learner, group, domain, lesson, assessment or curriculum file is missing."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} '{record_id}' not found")


class PathTraversalError(PedagogyError):
    """A record id or path segment would escape the data directory."""


class GraphValidationError(PedagogyError):
    """Skill graph or other stored JSON data (or a request against it) is malformed."""

    def __init__(self, message: str, details: dict | None = None):
        self.details = details or {}
        super().__init__(message)


class AgentRuntimeError(PedagogyError):
    """The external agent runtime could not be reached or reported a failure."""
