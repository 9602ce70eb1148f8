"""
Tests for the Deepgram speech client.
"""

import io
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from app.patient_service.services.speech_service import (
    SpeechClient,
    SpeechSynthesisError,
    _drain,
)


def _fake_deepgram(audio: bytes = b"", error: Exception | None = None):
    client = MagicMock()
    speak = client.speak.rest.v.return_value

    if error is not None:
        speak.stream_memory.side_effect = error
    else:
        speak.stream_memory.return_value = SimpleNamespace(
            stream_memory=io.BytesIO(audio)
        )

    return client


@pytest.mark.asyncio
async def test_synthesize_returns_complete_audio():
    audio = b"\xff\xfb" * 100_000  # larger than one read chunk
    client = _fake_deepgram(audio)

    with patch(
        "app.patient_service.services.speech_service.get_deepgram_client",
        return_value=client,
    ):
        result = await SpeechClient(api_key="key", voice="aura-luna-en").synthesize(
            "Hello doctor"
        )

    assert result == audio

    speak = client.speak.rest.v.return_value
    source, options = speak.stream_memory.call_args.args
    assert source == {"text": "Hello doctor"}
    assert options.model == "aura-luna-en"


@pytest.mark.asyncio
async def test_synthesize_wraps_provider_errors():
    client = _fake_deepgram(error=RuntimeError("401 Unauthorized"))

    with patch(
        "app.patient_service.services.speech_service.get_deepgram_client",
        return_value=client,
    ):
        with pytest.raises(SpeechSynthesisError, match="TTS generation failed"):
            await SpeechClient(api_key="key").synthesize("Hello")


@pytest.mark.asyncio
async def test_synthesize_rejects_empty_output():
    client = _fake_deepgram(b"")

    with patch(
        "app.patient_service.services.speech_service.get_deepgram_client",
        return_value=client,
    ):
        with pytest.raises(SpeechSynthesisError, match="no audio output"):
            await SpeechClient(api_key="key").synthesize("Hello")


@pytest.mark.asyncio
async def test_synthesize_requires_api_key():
    with pytest.raises(SpeechSynthesisError, match="API key missing"):
        await SpeechClient(api_key=None).synthesize("Hello")


@pytest.mark.asyncio
async def test_synthesize_rejects_blank_text():
    with pytest.raises(SpeechSynthesisError):
        await SpeechClient(api_key="key").synthesize("   ")


@pytest.mark.asyncio
async def test_synthesize_times_out():
    client = SpeechClient(api_key="key", timeout_seconds=0.05)

    def slow(_text):
        time.sleep(0.5)
        return b"late"

    with patch.object(client, "_synthesize_sync", side_effect=slow):
        with pytest.raises(SpeechSynthesisError, match="timed out"):
            await client.synthesize("Hello")


def test_drain_reads_from_start():
    stream = io.BytesIO(b"abcdef")
    stream.seek(4)

    assert _drain(stream) == b"abcdef"
