"""
Prompt construction for the virtual patient.

Every function here is pure: it only formats its inputs into instruction
strings for the completion service.
"""

import json
from typing import Any, Dict, Iterable

from app.patient_service.services.orchestrator.session_state import (
    SessionState,
    Turn,
)
from app.patient_service.services.schemas.patient_reply import (
    Animation,
    FacialExpression,
)

DEFAULT_PERSONA = "clinical"

PERSONA_TONES: Dict[str, str] = {
    "clinical": """
TONE:
- Answer briefly and precisely, as a patient who is used to doctors' questions
- Describe symptoms factually: location, timing, severity, what makes them better or worse
- Keep each reply to one to three sentences
""",
    "casual": """
TONE:
- Talk like an ordinary person in an examination room, in plain everyday words
- It is fine to sound worried, to hesitate, or to mention how the symptoms affect your day
- Keep each reply short and conversational
""",
}

DISEASE_LABEL_INSTRUCTION = (
    "Name one common medical condition that a patient might present with "
    "at a general practice or emergency department. "
    "Respond with only the condition name, no additional text."
)

PATIENT_NAME_INSTRUCTION = (
    "Invent a realistic full name (first and last) for a patient. "
    "Respond with only the name, no additional text."
)


def _format_case(case_document: Dict[str, Any]) -> str:
    return json.dumps(case_document, indent=2, ensure_ascii=False)


def render_history(turns: Iterable[Turn]) -> str:
    """
    Render turns as alternating doctor/patient lines, in recorded order.
    """
    return "\n".join(
        f"Doctor: {turn.doctor}\nPatient: {turn.patient}" for turn in turns
    )


def build_conversation_prompt(
    session: SessionState,
    case_document: Dict[str, Any],
    latest_user_message: str,
    *,
    persona: str = DEFAULT_PERSONA,
) -> str:
    """
    Build the system instruction for one conversational turn.

    Args:
        session: Current session, whose history is replayed verbatim.
        case_document: Case data grounding the simulated patient.
        latest_user_message: The doctor's newest utterance.
        persona: Key of PERSONA_TONES; unknown keys use the clinical tone.

    Returns:
        str: System prompt demanding a {"messages": [...]} JSON reply.
    """
    tone = PERSONA_TONES.get(persona, PERSONA_TONES[DEFAULT_PERSONA])
    # The pending turn is passed separately as the current question
    answered = (turn for turn in session.history if turn.answered)
    history = render_history(answered) or "(no previous conversation)"
    animations = ", ".join(item.value for item in Animation)
    expressions = ", ".join(item.value for item in FacialExpression)

    return f"""
You are a virtual patient simulation based on the following medical case data:
{_format_case(case_document)}

Your name is {session.patient_name}. The condition behind your complaints is {session.disease}.
Where the case data names a condition or gives details, the case data takes precedence.

Use this medical case data as the foundation for your responses:
- Be consistent with any information present in the case data
- For anything the case data does not cover, answer as a typical patient with these characteristics would
- Maintain consistency in your responses throughout the conversation
{tone}
IMPORTANT RULES:
- Stay in character as the patient at all times
- Never reveal that you are a virtual simulation or an AI
- Never provide a diagnosis; only describe what you feel and what has happened
- Do not contradict earlier answers or the case data
- Choose the animation and facial expression that match the emotional content of your reply:
  "Painful" / "painful" when describing pain, "Distressed" / "distressed" for anxiety or distress,
  "Thinking" / "thinking" when recalling information, "Talking" / "default" for neutral answers

Previous conversation:
{history}

Current doctor's question: {latest_user_message}

Your response MUST be in this exact JSON format:
{{
  "messages": [
    {{
      "text": "Your response text here",
      "animation": "ANIMATION_TYPE",
      "facialExpression": "EXPRESSION_TYPE"
    }}
  ]
}}

Where:
- ANIMATION_TYPE is one of: {animations}
- EXPRESSION_TYPE is one of: {expressions}
"""


def build_palpation_prompt(case_document: Dict[str, Any], region: str) -> str:
    """
    Build the system instruction for a palpation finding.

    Args:
        case_document: Case data the findings must agree with.
        region: Anatomical region the doctor is palpating.

    Returns:
        str: System prompt demanding a {"doctorFinding", "patientResponse"} reply.
    """
    return f"""
You are a clinical reasoning assistant simulating realistic palpation findings.

Analyze the following case data:
{_format_case(case_document)}

The doctor is palpating the {region} region. Describe:
1. What the doctor physically detects in that region: tenderness and its pattern,
   guarding, rigidity, masses, abnormal pulsations, skin temperature and moisture.
2. How the patient responds: what they say, how the pain feels and where it spreads,
   and any visible reaction such as wincing, sweating or pulling away.

Rules:
- Be concise, clinical and medically accurate
- Findings must be consistent with the condition, symptoms and vitals in the case
- Do not invent symptoms or findings unrelated to the case
- If the {region} region is not clinically relevant to the case's condition,
  clearly report normal findings for it and a calm patient response

Your response MUST be in this exact JSON format:
{{
  "doctorFinding": "Detailed physical examination findings",
  "patientResponse": "What the patient verbally says or physically does"
}}
"""


def build_palpation_request(region: str) -> str:
    """User-side message accompanying the palpation prompt."""
    return (
        f"Based on the case data provided, describe the palpation findings for the "
        f"{region} region, reflecting the severity and nature of the patient's condition."
    )
