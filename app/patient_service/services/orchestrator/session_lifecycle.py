"""
Session lifecycle management.

Resolves a request's session: existing sessions are returned unchanged,
unknown or expired ids get a freshly generated patient.
"""

from typing import Optional

from app.patient_service.services.completion_service import (
    DEFAULT_DISEASE,
    DEFAULT_PATIENT_NAME,
    CompletionClient,
)
from app.patient_service.services.orchestrator.session_state import (
    SessionState,
    SessionStore,
)
from app.patient_service.services.prompt_builder import (
    DISEASE_LABEL_INSTRUCTION,
    PATIENT_NAME_INSTRUCTION,
)
from app.patient_service.utils.logger import get_logger

logger = get_logger(__name__)


async def get_or_create_session(
    store: SessionStore,
    completion: CompletionClient,
    *,
    session_id: Optional[str] = None,
) -> SessionState:
    """
    Return the active session for ``session_id``, creating one if needed.

    A client-supplied id that is unknown (never seen, or expired) is adopted
    for the new session; a missing id gets a generated one.
    """
    if session_id:
        state = store.get(session_id)
        if state is not None:
            return state

    disease = await completion.generate_label(
        DISEASE_LABEL_INSTRUCTION,
        default=DEFAULT_DISEASE,
    )
    patient_name = await completion.generate_label(
        PATIENT_NAME_INSTRUCTION,
        default=DEFAULT_PATIENT_NAME,
    )

    state = store.create(
        disease=disease,
        patient_name=patient_name,
        session_id=session_id,
    )

    logger.info(
        "Session started",
        extra={"session_id": state.session_id, "reused_id": bool(session_id)},
    )
    return state
