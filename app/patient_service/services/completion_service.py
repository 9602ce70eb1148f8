"""
Completion service backed by Gemini.

Performs:
- Conversational patient replies (structured JSON, validated)
- One-shot label generation (disease, patient name)
- Palpation findings

Failures never propagate to callers: every entry point degrades to a
fixed fallback so the conversation can continue.
"""

import asyncio
import json
import re
import time
from typing import Any, Optional

import mlflow
from google import genai
from google.genai.types import GenerateContentConfig

from app.common.mlflow_control import mlflow_context, mlflow_safe
from app.patient_service.services.schemas.patient_reply import (
    Animation,
    FacialExpression,
    PalpationFinding,
    PatientReply,
    ReplyMessage,
)
from app.patient_service.services.prompt_builder import build_palpation_request
from app.patient_service.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"

FALLBACK_TEXT = (
    "I apologize, but I'm having trouble understanding. "
    "Could you please rephrase your question?"
)
FALLBACK_REPLY = PatientReply(
    messages=[
        ReplyMessage(
            text=FALLBACK_TEXT,
            animation=Animation.THINKING,
            facial_expression=FacialExpression.DEFAULT,
        )
    ]
)
FALLBACK_FINDING = PalpationFinding(
    doctor_finding="Unable to assess palpation findings at this time.",
    patient_response=(
        "The patient appears uncomfortable but does not provide specific feedback."
    ),
)

DEFAULT_DISEASE = "Common cold"
DEFAULT_PATIENT_NAME = "Sam Johnson"

# Generation parameters per call type
CONVERSATION_PARAMS = {"temperature": 0.6, "max_output_tokens": 1000}
PALPATION_PARAMS = {"temperature": 0.6, "max_output_tokens": 500}
LABEL_PARAMS = {"temperature": 1.0, "max_output_tokens": 15}


# --------------------------------------------------
# Test-safe dummy client (so unittest.patch works)
# --------------------------------------------------
class _NullGeminiClient:
    """Safe null Gemini client."""

    class models:
        @staticmethod
        def generate_content(*args, **kwargs):
            return None


# ==================================================
# Lazy Gemini loader
# ==================================================
def _load_gemini(api_key: Optional[str]):
    """
    Load Gemini client or return a safe null client.

    Returns:
        tuple: (client, GenerateContentConfig class or None)
    """
    if not api_key:
        logger.warning("Gemini API key missing")
        return _NullGeminiClient(), None

    return genai.Client(api_key=api_key), GenerateContentConfig


class CompletionClient:
    """
    Async facade over the blocking Gemini SDK.

    Each call runs in a worker thread and is bounded by ``timeout_seconds``.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        timeout_seconds: float = 30.0,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client = None
        self._config_cls = None

    def _gemini(self):
        if self._client is None:
            self._client, self._config_cls = _load_gemini(self.api_key)
        return self._client, self._config_cls

    async def _generate(
        self,
        *,
        contents: str,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
        temperature: float,
        max_output_tokens: int,
    ) -> Optional[str]:
        client, config_cls = self._gemini()

        config = None
        if config_cls is not None:
            config = config_cls(
                system_instruction=system_prompt,
                temperature=temperature,
                max_output_tokens=max_output_tokens,
                response_mime_type="application/json" if json_mode else None,
            )

        response = await asyncio.wait_for(
            asyncio.to_thread(
                client.models.generate_content,
                model=self.model,
                contents=contents,
                config=config,
            ),
            timeout=self.timeout_seconds,
        )
        return _extract_text(response)

    # ==================================================
    # PUBLIC ENTRY POINTS
    # ==================================================
    async def complete(self, system_prompt: str, user_message: str) -> PatientReply:
        """
        Generate the patient's structured reply to the doctor.

        Returns:
            PatientReply: Validated reply, or FALLBACK_REPLY on any failure.
        """
        start_time = time.time()

        try:
            raw = await self._generate(
                contents=user_message,
                system_prompt=system_prompt,
                json_mode=True,
                **CONVERSATION_PARAMS,
            )
            reply = PatientReply.from_payload(_safe_json(raw))
            fell_back = False

        except Exception as exc:
            logger.warning(
                "Patient reply generation failed; using fallback",
                extra={"error": type(exc).__name__},
            )
            reply = FALLBACK_REPLY.model_copy(deep=True)
            fell_back = True

        _record_call("patient_reply", start_time, fell_back)
        return reply

    async def generate_label(self, instruction: str, *, default: str) -> str:
        """
        Generate a short free-text label, such as a disease or a name.

        Returns:
            str: Cleaned label, or ``default`` on failure or empty output.
        """
        start_time = time.time()

        try:
            raw = await self._generate(contents=instruction, **LABEL_PARAMS)
            label = _clean_label(raw)
        except Exception as exc:
            logger.warning(
                "Label generation failed; using default",
                extra={"error": type(exc).__name__},
            )
            label = ""

        _record_call("label", start_time, not label)
        return label or default

    async def describe_palpation(
        self,
        system_prompt: str,
        region: str,
    ) -> PalpationFinding:
        """
        Generate palpation findings for one region.

        Returns:
            PalpationFinding: Validated finding, or FALLBACK_FINDING on failure.
        """
        start_time = time.time()

        try:
            raw = await self._generate(
                contents=build_palpation_request(region),
                system_prompt=system_prompt,
                json_mode=True,
                **PALPATION_PARAMS,
            )
            finding = PalpationFinding.model_validate(_safe_json(raw))
            fell_back = False

        except Exception as exc:
            logger.warning(
                "Palpation generation failed; using fallback",
                extra={"error": type(exc).__name__},
            )
            finding = FALLBACK_FINDING.model_copy(deep=True)
            fell_back = True

        _record_call("palpation", start_time, fell_back)
        return finding


# ==================================================
# HELPERS
# ==================================================
def _record_call(kind: str, start_time: float, fell_back: bool) -> None:
    latency = time.time() - start_time
    logger.info(
        "Completion call finished",
        extra={"kind": kind, "latency_sec": round(latency, 3), "fallback": fell_back},
    )

    with mlflow_context(run_name=f"completion_{kind}"):
        mlflow_safe(mlflow.set_tag, "llm_provider", "gemini")
        mlflow_safe(mlflow.set_tag, "call_kind", kind)
        mlflow_safe(mlflow.log_metric, "latency_sec", latency)
        mlflow_safe(mlflow.log_metric, "fallback", int(fell_back))


def _extract_text(response) -> str | None:
    """
    Extract text content from a Gemini API response object.

    Tries the ``text`` shortcut first, then joins the text parts of the
    first candidate.

    Returns:
        str | None: Stripped text, or None if the response holds none.
    """
    try:
        text = getattr(response, "text", None)
    except ValueError:
        # The SDK raises when a candidate carries no text parts
        text = None

    if isinstance(text, str) and text.strip():
        return text.strip()

    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None

    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None)
    if not isinstance(parts, list):
        return None

    collected = [
        p.text.strip()
        for p in parts
        if isinstance(getattr(p, "text", None), str) and p.text.strip()
    ]

    return " ".join(collected) if collected else None


def _safe_json(text: str | None) -> Any:
    """
    Parse JSON from model output, tolerating Markdown fences and chatter.

    Raises:
        ValueError: If the text is empty or holds no JSON value.
    """
    if not isinstance(text, str) or not text.strip():
        raise ValueError("Empty JSON response")

    cleaned = re.sub(r"```json|```", "", text, flags=re.I).strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    candidates = [
        match
        for match in (
            re.search(r"\{[\s\S]*\}", cleaned),
            re.search(r"\[[\s\S]*\]", cleaned),
        )
        if match
    ]
    if not candidates:
        raise ValueError("No JSON found")

    # Outermost value first: whichever bracket opens earliest
    candidates.sort(key=lambda match: match.start())
    for match in candidates[:-1]:
        try:
            return json.loads(match.group())
        except json.JSONDecodeError:
            continue

    return json.loads(candidates[-1].group())


def _clean_label(text: str | None) -> str:
    """Keep the first line of a label, without quotes or trailing period."""
    if not text:
        return ""

    first_line = text.strip().splitlines()[0]
    return first_line.strip().strip("\"'`*").rstrip(".").strip()
