"""
Pytest configuration and fixtures.
"""

import os

# Must be set before app modules read their settings at import time
os.environ["VPATIENT_ENV"] = "test"
os.environ.setdefault("VPATIENT_GEMINI_API_KEY", "test_gemini_key")
os.environ.setdefault("VPATIENT_DEEPGRAM_API_KEY", "test_deepgram_key")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.dependencies import (  # noqa: E402
    get_completion_client,
    get_session_store,
    get_speech_client,
)
from app.patient_service.config import Settings, get_settings  # noqa: E402
from app.patient_service.services.case_loader import get_case_document  # noqa: E402
from app.patient_service.services.orchestrator.session_state import (  # noqa: E402
    InMemorySessionStore,
)
from app.patient_service.services.prompt_builder import (  # noqa: E402
    DISEASE_LABEL_INSTRUCTION,
)
from app.patient_service.services.schemas.patient_reply import (  # noqa: E402
    PalpationFinding,
    PatientReply,
)
from app.patient_service.services.speech_service import (  # noqa: E402
    SpeechSynthesisError,
)

TEST_CASE = {
    "demographics": {"age": 54, "sex": "female"},
    "presentingComplaint": "Right lower abdominal pain for one day",
    "vitals": {"heartRate": "104 bpm", "temperature": "38.2 C"},
    "history": ["no previous surgery"],
}

DEFAULT_TEST_REPLY = {
    "messages": [
        {
            "text": "It hurts down here on the right side.",
            "animation": "Painful",
            "facialExpression": "painful",
        }
    ]
}


class FakeCompletionClient:
    """In-memory stand-in for CompletionClient that records every call."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.prompts = []
        self.label_calls = []
        self.palpation_calls = []
        self._diseases = 0
        self._names = 0

    async def complete(self, system_prompt, user_message):
        self.prompts.append((system_prompt, user_message))
        payload = self.replies.pop(0) if self.replies else DEFAULT_TEST_REPLY
        if isinstance(payload, Exception):
            raise payload
        return PatientReply.from_payload(payload)

    async def generate_label(self, instruction, *, default):
        self.label_calls.append(instruction)
        if instruction == DISEASE_LABEL_INSTRUCTION:
            self._diseases += 1
            return f"Condition {self._diseases}"
        self._names += 1
        return f"Patient {self._names}"

    async def describe_palpation(self, system_prompt, region):
        self.palpation_calls.append((system_prompt, region))
        return PalpationFinding(
            doctor_finding=f"Tenderness in the {region}.",
            patient_response="Ouch, that's sore.",
        )

    @property
    def upstream_calls(self) -> int:
        return len(self.prompts) + len(self.label_calls) + len(self.palpation_calls)


class FakeSpeechClient:
    """Records synthesized texts; optionally fails every call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.texts = []

    async def synthesize(self, text):
        self.texts.append(text)
        if self.fail:
            raise SpeechSynthesisError("TTS generation failed")
        return b"ID3" + text.encode("utf-8")


@pytest.fixture
def session_store():
    return InMemorySessionStore(ceiling=70)


@pytest.fixture
def fake_completion():
    return FakeCompletionClient()


@pytest.fixture
def fake_speech():
    return FakeSpeechClient()


@pytest.fixture
def test_settings():
    return Settings(
        ENV="test",
        GEMINI_API_KEY="test_gemini_key",
        DEEPGRAM_API_KEY="test_deepgram_key",
    )


@pytest.fixture
def api_client(session_store, fake_completion, fake_speech, test_settings):
    """TestClient with the store, upstream clients and case data overridden."""
    from app.main import app

    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_completion_client] = lambda: fake_completion
    app.dependency_overrides[get_speech_client] = lambda: fake_speech
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_case_document] = lambda: TEST_CASE

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def completion_factory():
    return FakeCompletionClient


@pytest.fixture
def speech_factory():
    return FakeSpeechClient


@pytest.fixture
def test_case():
    return dict(TEST_CASE)
