"""Streaming provider abstraction — pluggable backend for real and stub LLMs."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from enum import StrEnum

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


class ProviderCapabilities(BaseModel):
    """Declares what a provider can do."""

    streaming: bool = True
    stop_sequences: bool = True


class ChatRole(StrEnum):
    """Role of a message participant."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """Single message in a provider request."""

    role: ChatRole
    content: str


class CompletionRequest(BaseModel):
    """Streaming chat completion request sent to a provider."""

    model: str
    messages: list[ChatMessage]
    temperature: float | None = None
    top_p: float | None = None
    n: int = 1
    stop: list[str] = Field(default_factory=list)
    max_tokens: int | None = None
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    stream: bool = True


class StreamDelta(BaseModel):
    """One incremental text fragment of a streamed completion."""

    content: str
    finish_reason: str | None = None


class ProviderError(Exception):
    """Raised by providers on transport or protocol failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


# ---------------------------------------------------------------------------
# StreamingProvider ABC
# ---------------------------------------------------------------------------


class StreamingProvider(ABC):
    """Abstract base class for streaming completion providers.

    ``stream_completion`` is awaited to open the stream. Failing to open it
    raises :class:`ProviderError`. The returned async iterator yields
    :class:`StreamDelta` values until end-of-stream, and may also raise
    :class:`ProviderError` mid-way.
    """

    @abstractmethod
    def name(self) -> str:
        """Return the canonical provider name (e.g. 'openai', 'stub')."""

    @abstractmethod
    def capabilities(self) -> ProviderCapabilities:
        """Describe what this provider supports."""

    @abstractmethod
    async def stream_completion(self, request: CompletionRequest) -> AsyncIterator[StreamDelta]:
        """Open a streaming completion for *request*."""


# ---------------------------------------------------------------------------
# Stub implementation (for testing / offline development)
# ---------------------------------------------------------------------------


class StubStreamingProvider(StreamingProvider):
    """Streams scripted fragments without making real HTTP calls.

    ``fail_on_request`` makes opening the stream fail. ``fail_after`` makes the
    stream fail after that many fragments. ``delay`` sleeps before each fragment,
    which gives tests a window to cancel.
    """

    _CANNED = ("This ", "is ", "a ", "stub ", "response.")

    def __init__(
        self,
        fragments: Sequence[str] | None = None,
        fail_on_request: bool = False,
        fail_after: int | None = None,
        delay: float = 0.0,
    ) -> None:
        self._fragments = list(fragments) if fragments is not None else list(self._CANNED)
        self._fail_on_request = fail_on_request
        self._fail_after = fail_after
        self._delay = delay
        self.requests: list[CompletionRequest] = []

    def name(self) -> str:
        return "stub"

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(streaming=True, stop_sequences=False)

    async def stream_completion(self, request: CompletionRequest) -> AsyncIterator[StreamDelta]:
        self.requests.append(request)
        if self._fail_on_request:
            msg = "stub provider refused the request"
            raise ProviderError(msg, status_code=503)
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StreamDelta]:
        last = len(self._fragments) - 1
        for i, fragment in enumerate(self._fragments):
            if self._fail_after is not None and i >= self._fail_after:
                msg = f"stub stream broke after {i} fragments"
                raise ProviderError(msg)
            if self._delay:
                await asyncio.sleep(self._delay)
            yield StreamDelta(content=fragment, finish_reason="stop" if i == last else None)
