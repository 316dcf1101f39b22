import logging
from typing import Literal, Optional
from pathlib import Path
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    ENV: Literal["development", "staging", "production"] = Field("development")
    PORT: int = Field(8000)
    LOG_LEVEL: str = Field("INFO")

    # Credentials are checked per request, not at startup
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = Field(default="gpt-4o-mini")
    OPENAI_TEMPERATURE: float = Field(default=0.2, ge=0.0, le=2.0)
    OPENAI_MAX_TOKENS: int = Field(default=2000, ge=1)
    DATABASE_URL: Optional[str] = None

    # Extraction pipeline
    EXTRACTION_MAX_TOKENS: int = Field(default=6000, ge=1)
    BACKGROUND_WAVE_SIZE: int = Field(default=3, ge=1)
    SYNC_WAVE_SIZE: int = Field(default=1, ge=1)
    REQUIRE_PHONE_NUMBER: bool = Field(default=False)
    LEAD_DEDUPE_KEY: Literal["phone_number", "name_and_phone"] = Field(default="phone_number")
    BATCH_POLL_INTERVAL_SECONDS: float = Field(default=2.0, gt=0)

    @field_validator("OPENAI_API_KEY", "DATABASE_URL", mode="after")
    @classmethod
    def blank_to_none(cls, v):
        """Treat empty env values the same as unset ones"""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("LOG_LEVEL", mode="after")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper()

try:
    settings = Settings()
except ValidationError as e:
    logger.error("❌ Env validation failed:\n%s", e.json(indent=2))
    raise
