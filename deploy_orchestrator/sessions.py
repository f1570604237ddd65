"""In-process session bookkeeping for the ``Mcp-Session-Id`` header.

Sessions live only as long as the process and are never expired; a
long-running server accumulates one entry per client that does not send
``DELETE /mcp``. Affinity only holds when every request for a session reaches
the same process.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, Optional
from uuid import uuid4


@dataclass
class Session:
    identifier: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    client_info: Dict[str, Any] = field(default_factory=dict)
    protocol_version: Optional[str] = None


@dataclass(frozen=True)
class SessionResolution:
    session: Session
    is_new: bool

    @property
    def identifier(self) -> str:
        return self.session.identifier


class SessionStore:
    """Maps session identifiers to :class:`Session` state."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def resolve(self, supplied: Optional[str] = None) -> SessionResolution:
        """Return the session for ``supplied``, minting a new one when absent.

        A supplied identifier this process has never seen is adopted unchanged
        rather than replaced, so clients keep their correlation key across a
        server restart.
        """

        supplied = (supplied or "").strip() or None
        with self._lock:
            if supplied is not None:
                session = self._sessions.get(supplied)
                if session is None:
                    session = Session(identifier=supplied)
                    self._sessions[supplied] = session
                return SessionResolution(session=session, is_new=False)

            identifier = uuid4().hex
            while identifier in self._sessions:
                identifier = uuid4().hex
            session = Session(identifier=identifier)
            self._sessions[identifier] = session
            return SessionResolution(session=session, is_new=True)

    def close(self, identifier: Optional[str]) -> None:
        if not identifier:
            return
        with self._lock:
            self._sessions.pop(identifier, None)

    def get(self, identifier: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(identifier)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
