"""Speech port — abstract interface for voice capture.

Two variants exist: an Available recognizer that turns an audio file into
text, and UnavailableSpeech for deployments without a transcription backend.
Nothing in src.core depends on which one is active.
"""

from __future__ import annotations

from typing import Protocol


class SpeechUnavailableError(Exception):
    """Raised when voice input arrives but no recognizer is configured."""


class SpeechPort(Protocol):
    """Abstract voice-to-text interface used by the chat front-end."""

    available: bool

    async def transcribe(self, file_path: str) -> str: ...


class UnavailableSpeech:
    """Null recognizer: reports itself unavailable and refuses to transcribe."""

    available = False

    async def transcribe(self, file_path: str) -> str:
        raise SpeechUnavailableError("Speech recognition is not configured.")
