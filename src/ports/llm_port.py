"""LLM port — abstract interface for the external text-generation capability.

The orchestrator depends on this protocol, never on a specific provider SDK.
"""

from __future__ import annotations

from typing import Protocol


class LLMError(Exception):
    """Raised when the text-generation capability is misconfigured."""


class TextGenerator(Protocol):
    """Anything callable like src.core.llm.complete."""

    async def __call__(
        self,
        system: str,
        user_message: str,
        max_tokens: int = 256,
        json_output: bool = False,
    ) -> str: ...
