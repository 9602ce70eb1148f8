"""
FastAPI dependencies.

Provides the process-wide session store and upstream clients. Tests swap
these out through ``app.dependency_overrides``.
"""

from typing import Optional

from app.patient_service.config import settings
from app.patient_service.services.completion_service import CompletionClient
from app.patient_service.services.orchestrator.session_state import (
    InMemorySessionStore,
    SessionStore,
)
from app.patient_service.services.speech_service import SpeechClient

_session_store: Optional[SessionStore] = None
_completion_client: Optional[CompletionClient] = None
_speech_client: Optional[SpeechClient] = None


def get_session_store() -> SessionStore:
    """Return the shared in-memory session store."""
    global _session_store

    if _session_store is None:
        _session_store = InMemorySessionStore(
            ceiling=settings.SESSION_INTERACTION_CEILING,
        )

    return _session_store


def get_completion_client() -> CompletionClient:
    """Return the shared Gemini completion client."""
    global _completion_client

    if _completion_client is None:
        _completion_client = CompletionClient(
            api_key=settings.GEMINI_API_KEY,
            model=settings.COMPLETION_MODEL,
            timeout_seconds=settings.COMPLETION_TIMEOUT_SECONDS,
        )

    return _completion_client


def get_speech_client() -> SpeechClient:
    """Return the shared Deepgram speech client."""
    global _speech_client

    if _speech_client is None:
        _speech_client = SpeechClient(
            api_key=settings.DEEPGRAM_API_KEY,
            voice=settings.VOICE_MODEL,
            timeout_seconds=settings.SPEECH_TIMEOUT_SECONDS,
        )

    return _speech_client
