from __future__ import annotations

import secrets
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class Session:
    """An established MCP session.

    Immutable: scope assignment stores a replacement record under the same id,
    so protocol_version can never change after creation.
    """

    id: str
    protocol_version: str
    scopes: frozenset[str] = field(default_factory=frozenset)


class SessionStore:
    """In-memory session storage keyed by opaque identifiers.

    Sessions live for the lifetime of the process and are never deleted.
    Each operation is a single synchronous step, so concurrent requests on
    one event loop never observe a half-written entry.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def create_session(self, protocol_version: str) -> Session:
        """Allocate a fresh session. Never fails."""
        session_id = secrets.token_urlsafe(16)
        while session_id in self._sessions:
            session_id = secrets.token_urlsafe(16)
        session = Session(id=session_id, protocol_version=protocol_version)
        self._sessions[session_id] = session
        logger.info("session_created", session_id=session_id, protocol_version=protocol_version)
        return session

    def get_session(self, session_id: str | None) -> Session | None:
        """Pure lookup. None for ids never issued (or issued before a restart)."""
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def assign_scopes(self, session_id: str, scopes: Iterable[str]) -> Session | None:
        """Attach granted scopes to a session. Last writer wins."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        updated = replace(session, scopes=frozenset(scopes))
        self._sessions[session_id] = updated
        return updated

    def __len__(self) -> int:
        return len(self._sessions)
