"""Speech adapter factory — picks the Available or Unavailable variant from config."""

from __future__ import annotations

from src.config import settings
from src.ports.speech_port import SpeechPort, UnavailableSpeech


def create_speech_adapter() -> SpeechPort:
    """Return Whisper when OPENAI_API_KEY is set, otherwise the null recognizer."""
    api_key = settings.OPENAI_API_KEY.strip()

    if api_key:
        from src.adapters.whisper_speech import WhisperSpeechAdapter

        return WhisperSpeechAdapter(api_key=api_key)

    return UnavailableSpeech()
