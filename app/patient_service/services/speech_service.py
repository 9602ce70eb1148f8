"""
Text-to-speech using the Deepgram Aura API.

Each call returns the complete audio as one contiguous byte buffer.
"""

import asyncio
from typing import BinaryIO, Dict, Optional

from deepgram import DeepgramClient, SpeakRESTOptions

from app.patient_service.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_VOICE = "aura-asteria-en"
_CHUNK_SIZE = 64 * 1024

# One client per API key
_deepgram_clients: Dict[str, DeepgramClient] = {}


class SpeechSynthesisError(RuntimeError):
    """Raised when audio could not be produced for a message."""


def get_deepgram_client(api_key: str) -> DeepgramClient:
    """Get or create Deepgram client."""
    client = _deepgram_clients.get(api_key)

    if client is None:
        client = DeepgramClient(api_key=api_key)
        _deepgram_clients[api_key] = client
        logger.info("Deepgram client initialized")

    return client


def _drain(stream: BinaryIO) -> bytes:
    """Read a buffered audio stream to the end."""
    if stream.seekable():
        stream.seek(0)

    buffer = bytearray()
    while True:
        chunk = stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        buffer.extend(chunk)

    return bytes(buffer)


class SpeechClient:
    """
    Async facade over the blocking Deepgram speak API.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        voice: str = DEFAULT_VOICE,
        timeout_seconds: float = 30.0,
    ):
        self.api_key = api_key
        self.voice = voice
        self.timeout_seconds = timeout_seconds

    async def synthesize(self, text: str) -> bytes:
        """
        Convert text to speech.

        Args:
            text: Text to speak.

        Returns:
            bytes: Complete MP3 audio.

        Raises:
            SpeechSynthesisError: On missing credentials, provider failure,
                timeout, or empty output.
        """
        if not self.api_key:
            raise SpeechSynthesisError("Deepgram API key missing")

        if not text or not text.strip():
            raise SpeechSynthesisError("Nothing to synthesize")

        try:
            audio = await asyncio.wait_for(
                asyncio.to_thread(self._synthesize_sync, text),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            logger.error("Deepgram TTS timed out")
            raise SpeechSynthesisError("TTS generation timed out") from exc
        except Exception as exc:
            logger.error("Deepgram TTS failed", extra={"error": type(exc).__name__})
            raise SpeechSynthesisError("TTS generation failed") from exc

        if not audio:
            raise SpeechSynthesisError("Deepgram produced no audio output")

        logger.debug("TTS generated", extra={"bytes": len(audio)})
        return audio

    def _synthesize_sync(self, text: str) -> bytes:
        client = get_deepgram_client(self.api_key)
        options = SpeakRESTOptions(model=self.voice)

        response = client.speak.rest.v("1").stream_memory({"text": text}, options)
        return _drain(response.stream_memory)
