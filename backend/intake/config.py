"""Application configuration from environment variables."""
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env path relative to this file so it works regardless of CWD.
# Search order: backend/.env  →  project-root/.env
_THIS_DIR = Path(__file__).resolve().parent          # …/backend/intake
_BACKEND_DIR = _THIS_DIR.parent                       # …/backend
_PROJECT_DIR = _BACKEND_DIR.parent
_DOT_ENV = (
    _BACKEND_DIR / ".env"
    if (_BACKEND_DIR / ".env").exists()
    else _PROJECT_DIR / ".env"
)


class Settings(BaseSettings):
    """Settings for the intake backend. Set via env vars or .env file."""

    model_config = SettingsConfigDict(
        env_file=str(_DOT_ENV),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM (any OpenAI-compatible API)
    api_key: str = Field(default="", validation_alias=AliasChoices("API_KEY", "OPENAI_API_KEY"))
    base_url: str | None = Field(default=None, validation_alias=AliasChoices("BASE_URL", "OPENAI_BASE_URL"))
    llm_model: str = "gpt-4o"
    vision_model: str = "gpt-4o"
    llm_timeout: float = 60.0  # seconds; the core never retries on its own

    # Sampling
    analysis_temperature: float = 0.3
    wizard_temperature: float = 0.7
    wizard_max_tokens: int = 1000
    vision_max_tokens: int = 2000
    pdf_vision_max_tokens: int = 4096

    # Attachment handling
    pdf_extraction: Literal["native", "vision"] = "native"
    extraction_max_concurrency: int = 4
    max_upload_bytes: int = 10 * 1024 * 1024
    max_upload_files: int = 10

    # Wizard
    wizard_mode: Literal["model", "offline"] = "model"
    wizard_fallback: Literal["default", "topic"] = "default"

    # Reference documents
    guidelines_path: Path = _PROJECT_DIR / "Mortgage_Change_Management_AI_Guidelines.txt"
    training_catalog_path: Path = _BACKEND_DIR / "data" / "training-catalog.json"

    # Ticket sink defaults
    ticket_area_path: str | None = None
    ticket_iteration_path: str | None = None

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
