"""In-memory registry of open studio sessions."""

from __future__ import annotations

import uuid

from studio.metrics.prometheus_exporter import active_sessions
from studio.services.session import ClientFactory, StudioSession


class SessionStore:
    """Maps opaque session ids to their ``StudioSession``."""

    def __init__(self, client_factory: ClientFactory | None = None) -> None:
        self._client_factory = client_factory
        self._sessions: dict[str, StudioSession] = {}

    def create(self) -> tuple[str, StudioSession]:
        session_id = uuid.uuid4().hex
        session = StudioSession(self._client_factory)
        self._sessions[session_id] = session
        active_sessions.inc()
        return session_id, session

    def get(self, session_id: str) -> StudioSession:
        """Return the session or raise ``KeyError``."""

        return self._sessions[session_id]

    def drop(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            active_sessions.dec()

    def __len__(self) -> int:
        return len(self._sessions)
