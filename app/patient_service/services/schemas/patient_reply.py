"""
Schemas for structured model replies.

The completion service validates raw model JSON against these models,
normalizing out-of-range avatar tags instead of rejecting the reply.
"""

from enum import Enum
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Animation(str, Enum):
    """Avatar body animations the frontend can play."""

    TALKING = "Talking"
    IDLE = "Idle"
    THINKING = "Thinking"
    PAINFUL = "Painful"
    DISTRESSED = "Distressed"


class FacialExpression(str, Enum):
    """Avatar facial expressions the frontend can render."""

    DEFAULT = "default"
    SMILE = "smile"
    SAD = "sad"
    PAINFUL = "painful"
    DISTRESSED = "distressed"
    THINKING = "thinking"


ANIMATIONS = {item.value for item in Animation}
FACIAL_EXPRESSIONS = {item.value for item in FacialExpression}


class ReplyMessage(BaseModel):
    """
    One patient utterance with its avatar tags.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    text: str = Field(..., min_length=1)
    animation: Animation = Animation.TALKING
    facial_expression: FacialExpression = Field(
        FacialExpression.DEFAULT,
        alias="facialExpression",
    )

    @field_validator("animation", mode="before")
    @classmethod
    def _normalize_animation(cls, value: Any) -> Any:
        if isinstance(value, str) and value in ANIMATIONS:
            return value
        return Animation.TALKING

    @field_validator("facial_expression", mode="before")
    @classmethod
    def _normalize_expression(cls, value: Any) -> Any:
        if isinstance(value, str) and value in FACIAL_EXPRESSIONS:
            return value
        return FacialExpression.DEFAULT


class PatientReply(BaseModel):
    """
    Validated conversational reply: one or more patient messages.
    """

    messages: List[ReplyMessage] = Field(..., min_length=1)

    @field_validator("messages", mode="before")
    @classmethod
    def _wrap_single_message(cls, value: Any) -> Any:
        # Models occasionally return a bare object instead of a list
        if isinstance(value, dict):
            return [value]
        return value

    @classmethod
    def from_payload(cls, payload: Any) -> "PatientReply":
        """
        Validate a decoded JSON payload.

        Accepts either {"messages": [...]} or a bare list of messages.

        Raises:
            pydantic.ValidationError: If the payload does not fit the schema.
        """
        if isinstance(payload, list):
            payload = {"messages": payload}
        return cls.model_validate(payload)

    @property
    def transcript(self) -> str:
        """All message texts joined as the patient's side of one turn."""
        return " ".join(message.text for message in self.messages)


class PalpationFinding(BaseModel):
    """
    Result of a simulated palpation of one anatomical region.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    doctor_finding: str = Field(..., min_length=1, alias="doctorFinding")
    patient_response: str = Field(..., min_length=1, alias="patientResponse")
