"""
Main orchestration pipeline for a doctor's chat turn.

This module coordinates, strictly in order:
- Session resolution (under a per-session lock)
- Prompt construction from case data and history
- The completion call and history update
- Speech synthesis, one message at a time in reply order

Input validation happens in the route before anything here runs.
"""

import base64
import uuid
from typing import Any, Dict, List, Optional

from app.patient_service.services.completion_service import CompletionClient
from app.patient_service.services.orchestrator.session_lifecycle import (
    get_or_create_session,
)
from app.patient_service.services.orchestrator.session_state import SessionStore
from app.patient_service.services.prompt_builder import (
    DEFAULT_PERSONA,
    build_conversation_prompt,
    build_palpation_prompt,
)
from app.patient_service.services.schemas.chat_response import (
    ChatResponse,
    OutgoingMessage,
)
from app.patient_service.services.schemas.patient_reply import (
    PalpationFinding,
    ReplyMessage,
)
from app.patient_service.services.speech_service import (
    SpeechClient,
    SpeechSynthesisError,
)
from app.patient_service.utils.logger import get_logger

logger = get_logger(__name__)


async def run_chat_turn(
    *,
    message: str,
    session_id: Optional[str],
    store: SessionStore,
    completion: CompletionClient,
    speech: SpeechClient,
    case_document: Dict[str, Any],
    persona: str = DEFAULT_PERSONA,
) -> ChatResponse:
    """Run one doctor/patient exchange end to end."""
    session_id = session_id or str(uuid.uuid4())

    async with store.lock(session_id):
        state = await get_or_create_session(store, completion, session_id=session_id)

        store.append_doctor_turn(state.session_id, message)

        system_prompt = build_conversation_prompt(
            state,
            case_document,
            message,
            persona=persona,
        )
        reply = await completion.complete(system_prompt, message)

        store.record_patient_reply(state.session_id, reply.transcript)
        state = store.increment_and_maybe_expire(state.session_id)

        logger.info(
            "Chat turn completed",
            extra={
                "session_id": state.session_id,
                "interactions": state.interactions,
                "messages": len(reply.messages),
            },
        )

        outgoing: List[OutgoingMessage] = []
        for reply_message in reply.messages:
            outgoing.append(await _voice_message(speech, reply_message))

    return ChatResponse(messages=outgoing, session_id=state.session_id)


async def run_palpation(
    *,
    region: str,
    completion: CompletionClient,
    case_document: Dict[str, Any],
) -> PalpationFinding:
    """Simulate palpating one region of the case patient."""
    system_prompt = build_palpation_prompt(case_document, region)
    return await completion.describe_palpation(system_prompt, region)


# ===================== HELPERS =====================


async def _voice_message(
    speech: SpeechClient,
    reply_message: ReplyMessage,
) -> OutgoingMessage:
    """Attach synthesized audio; degrade to text-only if synthesis fails."""
    try:
        audio_bytes = await speech.synthesize(reply_message.text)
        audio = base64.b64encode(audio_bytes).decode("utf-8")
    except SpeechSynthesisError as exc:
        logger.warning(
            "Speech synthesis failed; sending text-only message",
            extra={"error": str(exc)},
        )
        audio = None

    return OutgoingMessage(
        text=reply_message.text,
        animation=reply_message.animation,
        facial_expression=reply_message.facial_expression,
        audio=audio,
    )
