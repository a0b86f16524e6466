"""
In-memory session registry.

Maps WebSocket connections to agent runtime queries. Each educator (or live
teaching screen) gets one session that survives multiple turns; idle
sessions are swept by a periodic cleanup task in the API.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from loguru import logger

from src.sessions.context import SessionContext

DEFAULT_MAX_AGE = timedelta(hours=4)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """A connected client and its (optional) in-flight agent query."""

    id: str
    created_at: datetime
    last_activity: datetime
    query: Any = None
    agent_session_id: Optional[str] = None
    processing: bool = False
    context: SessionContext = field(default_factory=SessionContext)

    def idle_for(self, now: datetime) -> timedelta:
        return now - self.last_activity


class SessionManager:
    """
    Tracks live sessions.

    The clock is injectable so idle cleanup can be tested without sleeping.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._sessions: dict[str, Session] = {}

    def create(self, session_id: Optional[str] = None) -> Session:
        now = self._clock()
        session = Session(id=session_id or str(uuid.uuid4()), created_at=now, last_activity=now)
        self._sessions[session.id] = session
        logger.debug(f"Session created: {session.id}")
        return session

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def set_query(self, session_id: str, query: Any) -> None:
        session = self._sessions.get(session_id)
        if session:
            session.query = query
            session.last_activity = self._clock()

    def touch(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session:
            session.last_activity = self._clock()

    async def remove(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        if session.query is not None:
            try:
                await session.query.close()
            except Exception as e:
                # The query may already have finished
                logger.debug(f"Ignoring close error for session {session_id}: {e}")
        logger.debug(f"Session removed: {session_id}")

    def list(self) -> list[Session]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    async def cleanup(self, max_age: timedelta = DEFAULT_MAX_AGE) -> int:
        """Remove sessions idle longer than ``max_age``; returns how many were removed."""
        now = self._clock()
        stale = [s.id for s in self._sessions.values() if s.idle_for(now) > max_age]
        for session_id in stale:
            await self.remove(session_id)
        if stale:
            logger.info(f"Cleaned up {len(stale)} stale session(s)")
        return len(stale)
