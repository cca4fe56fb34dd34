"""
Session store - SessionState snapshots and the append-only evaluation event log.

Writes use optimistic versioning: `load` returns the stored version, and
`save` only succeeds if nobody saved in between.
"""
import logging
import threading
from typing import Dict, List, Tuple

from errors import ConcurrentModificationError, NotFoundError
from state import EvaluationEvent, SessionState

logger = logging.getLogger(__name__)


class SessionStore:
    """Interface the state machine persists through."""

    def create(self, state: SessionState) -> SessionState:
        raise NotImplementedError

    def load(self, session_id: str) -> Tuple[SessionState, int]:
        raise NotImplementedError

    def save(self, state: SessionState, expected_version: int) -> SessionState:
        raise NotImplementedError

    def append_event(self, event: EvaluationEvent) -> None:
        raise NotImplementedError

    def get_events(self, session_id: str) -> List[EvaluationEvent]:
        raise NotImplementedError

    def list_session_ids(self) -> List[str]:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    """Process-local store. Every read returns a copy so callers cannot mutate stored state."""

    def __init__(self):
        self._sessions: Dict[str, SessionState] = {}
        self._events: Dict[str, List[EvaluationEvent]] = {}
        self._lock = threading.Lock()

    def create(self, state: SessionState) -> SessionState:
        with self._lock:
            if state.session_id in self._sessions:
                raise ConcurrentModificationError(f"Session already exists: {state.session_id}")
            stored = state.model_copy(update={"version": 1}, deep=True)
            self._sessions[state.session_id] = stored
            self._events[state.session_id] = []
            return stored.model_copy(deep=True)

    def load(self, session_id: str) -> Tuple[SessionState, int]:
        with self._lock:
            stored = self._sessions.get(session_id)
            if stored is None:
                raise NotFoundError(f"Session not found: {session_id}")
            return stored.model_copy(deep=True), stored.version

    def save(self, state: SessionState, expected_version: int) -> SessionState:
        with self._lock:
            stored = self._sessions.get(state.session_id)
            if stored is None:
                raise NotFoundError(f"Session not found: {state.session_id}")
            if stored.version != expected_version:
                raise ConcurrentModificationError(
                    f"Session {state.session_id} is at version {stored.version}, expected {expected_version}"
                )
            saved = state.model_copy(update={"version": expected_version + 1}, deep=True)
            self._sessions[state.session_id] = saved
            return saved.model_copy(deep=True)

    def append_event(self, event: EvaluationEvent) -> None:
        with self._lock:
            if event.session_id not in self._events:
                raise NotFoundError(f"Session not found: {event.session_id}")
            events = self._events[event.session_id]
            if events and event.sequence <= events[-1].sequence:
                raise ConcurrentModificationError(
                    f"Event {event.sequence} for session {event.session_id} is out of order"
                )
            events.append(event)

    def get_events(self, session_id: str) -> List[EvaluationEvent]:
        with self._lock:
            if session_id not in self._events:
                raise NotFoundError(f"Session not found: {session_id}")
            return list(self._events[session_id])

    def list_session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())
