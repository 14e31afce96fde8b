"""
OmniAgent — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram (chat front-end)
    TELEGRAM_BOT_TOKEN: str

    # LLM — provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str

    # Audio — OpenAI Whisper (voice capture only; empty disables voice)
    OPENAI_API_KEY: str = ""

    # Security
    ALLOWED_USER_IDS: list[int] = []

    # Agent pipeline output budgets, one per stage
    PLANNER_MAX_TOKENS: int = 1024
    EXECUTOR_MAX_TOKENS: int = 1024
    REVIEWER_MAX_TOKENS: int = 512

    # Stream Planner/Executor/Reviewer progress into the chat while a run is in flight
    SHOW_AGENT_LOGS: bool = True

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("PLANNER_MAX_TOKENS", "EXECUTOR_MAX_TOKENS", "REVIEWER_MAX_TOKENS", mode="before")
    @classmethod
    def parse_tokens(cls, v: str | int) -> int:
        return int(v)

    @field_validator("SHOW_AGENT_LOGS", mode="before")
    @classmethod
    def parse_flag(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() not in ("0", "false", "no", "off", "")


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    llm_api_key = os.getenv("LLM_API_KEY", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    if not llm_api_key or llm_api_key.startswith("your-"):
        print("ERROR: LLM_API_KEY is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        OPENAI_API_KEY=os.getenv("OPENAI_API_KEY", ""),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        PLANNER_MAX_TOKENS=os.getenv("PLANNER_MAX_TOKENS", "1024"),
        EXECUTOR_MAX_TOKENS=os.getenv("EXECUTOR_MAX_TOKENS", "1024"),
        REVIEWER_MAX_TOKENS=os.getenv("REVIEWER_MAX_TOKENS", "512"),
        SHOW_AGENT_LOGS=os.getenv("SHOW_AGENT_LOGS", "true"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
