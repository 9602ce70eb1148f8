"""
Schemas for outbound responses.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.patient_service.services.schemas.patient_reply import (
    Animation,
    FacialExpression,
)


class OutgoingMessage(BaseModel):
    """
    A patient message as delivered to the avatar frontend.
    """

    model_config = ConfigDict(populate_by_name=True)

    text: str
    animation: Animation
    facial_expression: FacialExpression = Field(..., alias="facialExpression")
    audio: Optional[str] = Field(
        None,
        description="Base64-encoded audio; null when synthesis failed",
    )


class ChatResponse(BaseModel):
    """
    Chat response schema.
    """

    model_config = ConfigDict(populate_by_name=True)

    messages: List[OutgoingMessage]
    session_id: str = Field(..., alias="sessionId")
