"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from studydeck.config import settings

    # Access settings
    backend = settings.STORAGE_BACKEND
    redis_url = settings.REDIS_URL
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "StudyDeck"
    # Development mode: invalid session transitions raise instead of being logged
    DEBUG: bool = False

    # =========================================================================
    # STORAGE
    # =========================================================================
    # Which key-value collaborator backs the card store
    STORAGE_BACKEND: Literal["memory", "redis", "sql"] = "memory"

    # Namespace for every key written by the card store
    STORAGE_KEY_PREFIX: str = "studydeck"

    # Quota for the in-memory backend (bytes). Mirrors a browser-style
    # key-value store so capacity failures can be exercised locally.
    STORAGE_MAX_BYTES: int = 5 * 1024 * 1024

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # SQLAlchemy URL for the SQL key-value table
    DATABASE_URL: str = "sqlite:///studydeck.db"

    # Optional byte quota for the SQL backend (0 = unlimited)
    DATABASE_MAX_BYTES: int = 0

    # =========================================================================
    # EXTRACTION
    # =========================================================================
    # Validity window applied to every candidate card
    EXTRACT_QUESTION_MIN_LENGTH: int = 5
    EXTRACT_QUESTION_MAX_LENGTH: int = 500
    EXTRACT_ANSWER_MIN_LENGTH: int = 20
    EXTRACT_ANSWER_MAX_LENGTH: int = 1500

    # Bold "**Term**: explanation" runs need an explanation longer than this
    EXTRACT_DEFINITION_MIN_LENGTH: int = 5

    # Bold-led list items (description length window)
    EXTRACT_LIST_ANSWER_MIN_LENGTH: int = 20
    EXTRACT_LIST_ANSWER_MAX_LENGTH: int = 800

    # Fenced code blocks (body length window and lookback for context)
    EXTRACT_CODE_MIN_LENGTH: int = 10
    EXTRACT_CODE_MAX_LENGTH: int = 1000
    EXTRACT_CODE_LOOKBACK_LINES: int = 15
    EXTRACT_CODE_CONTEXT_MIN_LENGTH: int = 15
    EXTRACT_INCLUDE_CODE_EXAMPLES: bool = True

    # Answers where more than this share of non-blank lines are list items
    # are rejected as list markup rather than prose
    EXTRACT_LIST_ONLY_RATIO: float = 0.8

    # =========================================================================
    # SESSIONS & STATISTICS
    # =========================================================================
    SESSION_SHUFFLE_DEFAULT: bool = True

    # Confidence at or above which a card counts as mastered (4 = Proficient)
    MASTERY_CONFIDENCE_THRESHOLD: int = 4

    # =========================================================================
    # EXPORT / GENERATED CARDS
    # =========================================================================
    EXPORT_FORMAT_VERSION: str = "1.0"

    # Sections shorter than this are not worth sending to a generator
    GENERATION_SECTION_MIN_LENGTH: int = 100
    GENERATION_QUESTIONS_PER_SECTION: int = 3

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
