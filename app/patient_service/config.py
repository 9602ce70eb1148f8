"""
Application configuration.

Centralized environment-based settings using Pydantic v2.
Read once at import; every value is overridable with a VPATIENT_ variable.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

DEFAULT_CASE_FILE = Path(__file__).resolve().parent / "data" / "case.json"


class Settings(BaseSettings):
    # --------------------
    # Environment
    # --------------------
    ENV: str = "dev"
    PORT: int = 3000

    # --------------------
    # CORS
    # --------------------
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins for the avatar frontend",
    )

    # --------------------
    # LLM (Gemini)
    # --------------------
    GEMINI_API_KEY: Optional[str] = None
    COMPLETION_MODEL: str = "gemini-2.0-flash"
    COMPLETION_TIMEOUT_SECONDS: float = 30.0

    # --------------------
    # Speech (Deepgram Aura)
    # --------------------
    DEEPGRAM_API_KEY: Optional[str] = None
    VOICE_MODEL: str = "aura-asteria-en"
    SPEECH_TIMEOUT_SECONDS: float = 30.0

    # --------------------
    # Simulation
    # --------------------
    CASE_FILE: Path = DEFAULT_CASE_FILE
    SESSION_INTERACTION_CEILING: int = Field(70, ge=1)
    PATIENT_PERSONA: str = "clinical"

    # --------------------
    # Rate limiting
    # --------------------
    CHAT_RATE_LIMIT: str = "30/minute"

    # --------------------
    # Observability
    # --------------------
    MLFLOW_TRACKING_URI: Optional[str] = None
    SENTRY_DSN: Optional[str] = None

    model_config = ConfigDict(
        env_file=".env",
        env_prefix="VPATIENT_",
        extra="ignore",
    )

    @property
    def api_keys_configured(self) -> bool:
        """True when both upstream providers have credentials."""
        return bool(self.GEMINI_API_KEY) and bool(self.DEEPGRAM_API_KEY)


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return settings
