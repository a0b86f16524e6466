"""
Sessions: connected clients and the context accumulated from their agent turns.
"""

from src.sessions.context import SessionContext, extract_session_context
from src.sessions.manager import Session, SessionManager

__all__ = [
    "Session",
    "SessionContext",
    "SessionManager",
    "extract_session_context",
]
