"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like a scripted LLM and a seeded controller.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("OPENAI_API_KEY", "")

import json

import pytest
from unittest.mock import AsyncMock


PLAN_TEXT = "1. Read tasks 2. Add the requested item 3. Confirm"
FINAL_TEXT = "Done! I added 'Buy milk' to your list."


def execution_json(**overrides) -> str:
    payload = {
        "reasoning": "User asked for one new task.",
        "answer": "Added task Buy milk.",
        "newTasks": [{"title": "Buy milk"}],
        "newEvents": [],
    }
    payload.update(overrides)
    return json.dumps(payload)


@pytest.fixture
def scripted_llm():
    """An AsyncMock LLM returning plan, execution JSON and review text in order."""
    return AsyncMock(side_effect=[PLAN_TEXT, execution_json(), FINAL_TEXT])


@pytest.fixture
def controller():
    """A StateController seeded with the built-in sample data."""
    from src.core.state_controller import StateController
    return StateController()
