"""
Session state management.

Maintains short-lived, in-memory conversational context per session.
NOTE: This is ephemeral and resets on application restart.

A session lives until its interaction counter reaches the configured
ceiling; it is then marked EXPIRED and dropped from the store, and the next
reference to the same id starts a fresh session.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from app.patient_service.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_INTERACTION_CEILING = 70


class SessionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class SessionNotFoundError(KeyError):
    """Raised when a session id is not present in the store."""


class Turn:
    """One doctor utterance and the patient's reply to it."""

    def __init__(self, doctor: str, patient: str = ""):
        self.doctor = doctor
        self.patient = patient

    @property
    def answered(self) -> bool:
        return bool(self.patient)

    def __repr__(self) -> str:
        return f"Turn(doctor={self.doctor!r}, patient={self.patient!r})"


class SessionState:
    """
    In-memory session state container.

    ``disease`` and ``patient_name`` are fixed at creation.
    """

    def __init__(self, session_id: str, *, disease: str, patient_name: str):
        self.session_id = session_id
        self._disease = disease
        self._patient_name = patient_name

        self.interactions: int = 0
        self.history: List[Turn] = []
        self.status: SessionStatus = SessionStatus.ACTIVE
        self.created_at = datetime.now(timezone.utc)

    @property
    def disease(self) -> str:
        return self._disease

    @property
    def patient_name(self) -> str:
        return self._patient_name

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    @property
    def answered_turns(self) -> int:
        return sum(1 for turn in self.history if turn.answered)


class SessionStore(ABC):
    """
    Storage contract for session state.

    The request handler depends only on this interface, so a backed store
    can replace the in-memory one without touching orchestration.
    """

    @abstractmethod
    def __len__(self) -> int:
        """Number of active sessions."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[SessionState]:
        """Return the active session, or None if unknown or expired."""

    @abstractmethod
    def create(
        self,
        *,
        disease: str,
        patient_name: str,
        session_id: Optional[str] = None,
    ) -> SessionState:
        """Create and register a new active session."""

    @abstractmethod
    def append_doctor_turn(self, session_id: str, text: str) -> Turn:
        """Append a turn with an empty patient utterance."""

    @abstractmethod
    def record_patient_reply(self, session_id: str, text: str) -> Turn:
        """Fill the patient utterance of the most recent turn."""

    @abstractmethod
    def increment_and_maybe_expire(self, session_id: str) -> SessionState:
        """Count a completed interaction; expire the session at the ceiling."""

    @abstractmethod
    def lock(self, session_id: str) -> asyncio.Lock:
        """Per-session lock serializing concurrent requests."""


class InMemorySessionStore(SessionStore):
    """
    Process-lifetime session store backed by a dict.
    """

    def __init__(self, ceiling: int = DEFAULT_INTERACTION_CEILING):
        if ceiling < 1:
            raise ValueError("Interaction ceiling must be at least 1")
        self.ceiling = ceiling
        self._sessions: Dict[str, SessionState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Optional[SessionState]:
        state = self._sessions.get(session_id)
        if state is None or not state.is_active:
            return None
        return state

    def create(
        self,
        *,
        disease: str,
        patient_name: str,
        session_id: Optional[str] = None,
    ) -> SessionState:
        session_id = session_id or str(uuid.uuid4())
        state = SessionState(
            session_id,
            disease=disease,
            patient_name=patient_name,
        )
        self._sessions[session_id] = state

        logger.info(
            "Creating new session state",
            extra={"session_id": session_id},
        )
        return state

    def append_doctor_turn(self, session_id: str, text: str) -> Turn:
        state = self._require(session_id)
        turn = Turn(doctor=text)
        state.history.append(turn)
        return turn

    def record_patient_reply(self, session_id: str, text: str) -> Turn:
        if not text:
            raise ValueError("Patient reply must not be empty")

        state = self._require(session_id)
        if not state.history:
            raise ValueError(f"Session {session_id} has no turn to answer")

        turn = state.history[-1]
        turn.patient = text
        return turn

    def increment_and_maybe_expire(self, session_id: str) -> SessionState:
        state = self._require(session_id)
        state.interactions += 1

        if state.interactions >= self.ceiling:
            state.status = SessionStatus.EXPIRED
            self._sessions.pop(session_id, None)
            # The lock outlives the session: waiters may still hold it
            logger.info(
                "Session reached interaction ceiling; cleared from memory",
                extra={
                    "session_id": session_id,
                    "interactions": state.interactions,
                },
            )

        return state

    def lock(self, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    def _require(self, session_id: str) -> SessionState:
        state = self.get(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        return state
