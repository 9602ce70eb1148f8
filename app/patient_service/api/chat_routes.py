"""
Virtual patient API routes.

Responsibilities:
- Input and configuration validation
- Orchestration delegation
- Collapsing unexpected failures into a generic 500
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from app.core.dependencies import (
    get_completion_client,
    get_session_store,
    get_speech_client,
)
from app.core.rate_limit import limiter
from app.patient_service.config import Settings, get_settings, settings as app_settings
from app.patient_service.services.case_loader import get_case_document
from app.patient_service.services.completion_service import CompletionClient
from app.patient_service.services.orchestrator.orchestrator import (
    run_chat_turn,
    run_palpation,
)
from app.patient_service.services.orchestrator.session_state import SessionStore
from app.patient_service.services.schemas.chat_request import (
    ChatRequest,
    PalpationRequest,
)
from app.patient_service.services.speech_service import SpeechClient
from app.patient_service.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Virtual Patient"])


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "Virtual Patient API is Running"


@router.post("/chat")
@limiter.limit(app_settings.CHAT_RATE_LIMIT)
async def chat(
    request: Request,
    payload: ChatRequest,
    settings: Settings = Depends(get_settings),
    store: SessionStore = Depends(get_session_store),
    completion: CompletionClient = Depends(get_completion_client),
    speech: SpeechClient = Depends(get_speech_client),
    case_document: Dict[str, Any] = Depends(get_case_document),
) -> Dict[str, Any]:
    """
    Answer a doctor's message as the virtual patient, with voice.

    Flow:
    - Validate message and provider credentials
    - Run the chat turn orchestration
    - Return messages with base64 audio and the session id
    """
    if not payload.message or not payload.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    if not settings.api_keys_configured:
        logger.warning("Chat rejected: provider API keys are not configured")
        raise HTTPException(status_code=400, detail="API keys are missing")

    try:
        response = await run_chat_turn(
            message=payload.message,
            session_id=payload.session_id,
            store=store,
            completion=completion,
            speech=speech,
            case_document=case_document,
            persona=settings.PATIENT_PERSONA,
        )
    except Exception:
        logger.exception(
            "Chat turn failed",
            extra={"session_id": payload.session_id},
        )
        raise HTTPException(status_code=500, detail="Internal server error")

    return response.model_dump(by_alias=True, mode="json")


@router.post("/palpation")
@limiter.limit(app_settings.CHAT_RATE_LIMIT)
async def palpation(
    request: Request,
    payload: PalpationRequest,
    settings: Settings = Depends(get_settings),
    completion: CompletionClient = Depends(get_completion_client),
    case_document: Dict[str, Any] = Depends(get_case_document),
) -> Dict[str, Any]:
    """
    Describe what the doctor feels when palpating a region, and how the
    patient reacts.
    """
    if not payload.region or not payload.region.strip():
        raise HTTPException(status_code=400, detail="Region is required")

    if not settings.GEMINI_API_KEY:
        logger.warning("Palpation rejected: Gemini API key is not configured")
        raise HTTPException(status_code=400, detail="API keys are missing")

    try:
        finding = await run_palpation(
            region=payload.region.strip(),
            completion=completion,
            case_document=case_document,
        )
    except Exception:
        logger.exception("Palpation failed")
        raise HTTPException(status_code=500, detail="Internal server error")

    return finding.model_dump(by_alias=True)


@router.get("/health")
async def health(
    request: Request,
    store: SessionStore = Depends(get_session_store),
) -> Dict[str, Any]:
    return {
        "status": "ok",
        "caseLoaded": getattr(request.app.state, "case_loaded", False),
        "activeSessions": len(store),
    }
