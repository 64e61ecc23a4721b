"""
Completion Gateway.

Single entry point for text completion. Callers hand over chat messages and
options; the gateway dispatches to whichever backend provisioning attached,
converts every backend failure into InferenceFailure and strips reasoning
markup from the reply. Retry and fallback policy live in the callers.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from loguru import logger

from .errors import InferenceError, InferenceFailure, InferenceUnavailable

VALID_ROLES = ("system", "user", "assistant")

# Paired reasoning blocks emitted by thinking models (Qwen3, DeepSeek-R1, ...)
_REASONING_PATTERN = re.compile(
    r"<(think|thinking|reasoning)>.*?</\1>",
    re.IGNORECASE | re.DOTALL,
)


@dataclass(frozen=True)
class CompletionOptions:
    """Sampling options for one completion request."""

    temperature: float = 0.3
    max_tokens: int = 512
    top_p: float | None = None
    top_k: int | None = None
    stop_sequences: tuple[str, ...] | None = None


Message = dict[str, str]


class CompletionBackend(ABC):
    """Contract every completion backend implements."""

    name: str = "backend"
    available: bool = True

    @abstractmethod
    async def complete(self, messages: list[Message], options: CompletionOptions) -> str:
        """
        Run one chat completion.

        Returns the raw model text. Must NOT parse or post-process it; may
        raise any exception on failure.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release the underlying session."""


class NullBackend(CompletionBackend):
    """Stand-in when no local runtime exists; every request is unavailable."""

    name = "null"
    available = False

    async def complete(self, messages: list[Message], options: CompletionOptions) -> str:
        raise InferenceUnavailable()


def strip_reasoning(text: str) -> str:
    """Remove paired reasoning segments and surrounding whitespace."""
    return _REASONING_PATTERN.sub("", text).strip()


def validate_messages(messages: list[Message]) -> list[Message]:
    """Check roles and content types; returns a normalized copy."""
    if not messages:
        raise ValueError("At least one message is required")

    normalized = []
    for msg in messages:
        if not isinstance(msg, dict):
            raise ValueError(f"Message must be a dict, got {type(msg)}")
        role = msg.get("role", "user")
        if role not in VALID_ROLES:
            raise ValueError(f"Role must be 'system', 'user', or 'assistant', got '{role}'")
        content = msg.get("content", "")
        if not isinstance(content, str):
            raise ValueError(f"Content must be a string, got {type(content)}")
        normalized.append({"role": role, "content": content})
    return normalized


class CompletionGateway:
    """Routes completion requests to the attached backend."""

    def __init__(self, backend: CompletionBackend | None = None):
        self._backend: CompletionBackend = backend or NullBackend()

    @property
    def backend(self) -> CompletionBackend:
        return self._backend

    @property
    def is_available(self) -> bool:
        return self._backend.available

    def attach(self, backend: CompletionBackend) -> None:
        logger.debug(f"Completion backend attached: {backend.name}")
        self._backend = backend

    def detach(self) -> CompletionBackend:
        backend, self._backend = self._backend, NullBackend()
        return backend

    async def complete(
        self,
        messages: list[Message],
        options: CompletionOptions | None = None,
    ) -> str:
        """
        Complete a chat and return the cleaned reply.

        Raises:
            InferenceUnavailable: No session is initialized
            InferenceFailure: Backend error or empty/invalid payload
        """
        if not self.is_available:
            raise InferenceUnavailable()

        payload = validate_messages(messages)
        options = options or CompletionOptions()

        try:
            raw = await self._backend.complete(payload, options)
        except InferenceError:
            raise
        except Exception as e:
            raise InferenceFailure(f"{self._backend.name} completion failed: {e}") from e

        if not isinstance(raw, str):
            raise InferenceFailure(f"{self._backend.name} returned {type(raw).__name__}, expected text")

        text = strip_reasoning(raw)
        if not text:
            raise InferenceFailure(f"{self._backend.name} returned no response")
        return text

    async def close(self) -> None:
        backend = self.detach()
        try:
            await backend.close()
        except Exception as e:
            logger.error(f"Error closing completion backend: {e}")
