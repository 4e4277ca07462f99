"""In-memory session state for the daemon.

Each session keeps the most recent prompts (bounded, oldest evicted first)
and the last command the backend produced for it. Sessions are created
lazily and live for as long as the daemon process does.

Handlers never see the live session objects. They get a SessionSnapshot,
an immutable copy taken under the store lock.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Optional, Tuple

DEFAULT_HISTORY_LIMIT = 10


@dataclass
class SessionData:
    """Mutable per-session record, owned by SessionStore."""
    prompts: Deque[str] = field(default_factory=deque)
    last_command: Optional[str] = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Point-in-time copy of a session handed out to request handlers."""
    history: Tuple[str, ...] = ()
    last_command: Optional[str] = None


class SessionStore:
    """
    Bounded per-session history cache.

    Thread safety: a single lock guards the whole mapping. Every critical
    section is a dict lookup plus a trim over at most ``history_limit``
    entries, so one coarse lock is enough for a single-user daemon.
    """

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT):
        """
        Args:
            history_limit: Maximum number of prompts kept per session (N >= 1)
        """
        if history_limit < 1:
            raise ValueError(f"history_limit must be >= 1, got {history_limit}")
        self.history_limit = history_limit
        self._sessions: Dict[str, SessionData] = {}
        self._lock = threading.Lock()

    def record_input(self, session_id: str, prompt: str) -> None:
        """Append a prompt to the session history, evicting the oldest on overflow."""
        with self._lock:
            self._record_input_locked(session_id, prompt)

    def record_output(self, session_id: str, command: str) -> None:
        """Remember the most recent command produced for the session."""
        with self._lock:
            self._get_or_create(session_id).last_command = command

    def snapshot(self, session_id: str) -> SessionSnapshot:
        """
        Get a copy of the session's history and last command.

        Unknown sessions yield an empty snapshot; the session is not created.
        """
        with self._lock:
            return self._snapshot_locked(session_id)

    def record_input_and_snapshot(self, session_id: str, prompt: str) -> SessionSnapshot:
        """
        Record a prompt and snapshot the session in one critical section.

        The returned history always ends with ``prompt``.
        """
        with self._lock:
            self._record_input_locked(session_id, prompt)
            return self._snapshot_locked(session_id)

    def stats(self) -> Dict[str, Any]:
        """Get store statistics for status logging."""
        with self._lock:
            return {
                "active_sessions": len(self._sessions),
                "history_limit": self.history_limit,
            }

    def _get_or_create(self, session_id: str) -> SessionData:
        session = self._sessions.get(session_id)
        if session is None:
            session = SessionData()
            self._sessions[session_id] = session
        return session

    def _record_input_locked(self, session_id: str, prompt: str) -> None:
        prompts = self._get_or_create(session_id).prompts
        prompts.append(prompt)
        while len(prompts) > self.history_limit:
            prompts.popleft()

    def _snapshot_locked(self, session_id: str) -> SessionSnapshot:
        session = self._sessions.get(session_id)
        if session is None:
            return SessionSnapshot()
        return SessionSnapshot(
            history=tuple(session.prompts),
            last_command=session.last_command,
        )
