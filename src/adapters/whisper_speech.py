"""Whisper speech adapter — implements SpeechPort with OpenAI Whisper.

After transcription, text flows into the same agent pipeline as typed messages.
"""

from __future__ import annotations

import logging
from pathlib import Path

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class WhisperSpeechAdapter:
    """OpenAI Whisper implementation of SpeechPort."""

    available = True

    def __init__(self, api_key: str, model: str = "whisper-1") -> None:
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model

    async def transcribe(self, file_path: str) -> str:
        """Transcribe an audio file (OGG, MP3, etc.).

        Raises:
            Exception: If the Whisper API call fails.
        """
        try:
            with open(file_path, "rb") as audio_file:
                response = await self._client.audio.transcriptions.create(
                    model=self._model,
                    file=audio_file,
                )
            text = response.text.strip()
            logger.info("Transcribed %d chars from %s", len(text), Path(file_path).name)
            return text
        except Exception as exc:
            logger.error("Whisper transcription failed for %s: %s", file_path, exc)
            raise
