"""
Schemas for inbound requests.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """
    Doctor chat request schema.

    Emptiness of ``message`` is checked by the route so that it can answer
    400 instead of a validation error.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = Field(
        None,
        description="The doctor's utterance",
    )
    session_id: Optional[str] = Field(
        None,
        alias="sessionId",
        description="Existing session ID; if omitted, a new session is created",
    )


class PalpationRequest(BaseModel):
    """
    Palpation request schema.
    """

    region: Optional[str] = Field(
        None,
        description="Anatomical region being palpated, e.g. 'right lower quadrant'",
    )
