"""Error taxonomy for sessions, buffers and streaming completions."""

from __future__ import annotations


class ChatStreamError(Exception):
    """Base class for all chatstream errors.

    ``stage`` names the orchestrator stage that failed, when the error was
    raised during a completion invocation.
    """

    def __init__(self, message: str, stage: str | None = None) -> None:
        self.stage = stage
        super().__init__(message)


class ValidationError(ChatStreamError, ValueError):
    """Raised when Message or Session fields fail validation."""


class OversizedMessageError(ChatStreamError):
    """Raised when a single message cannot fit the token ceiling on its own."""

    def __init__(self, token_cost: int, available: int, stage: str | None = None) -> None:
        self.token_cost = token_cost
        self.available = available
        msg = f"message costs {token_cost} tokens but only {available} fit the ceiling"
        super().__init__(msg, stage=stage)


class SessionEndedError(ChatStreamError):
    """Raised when a message is added to an ended session."""


class SessionNotFoundError(ChatStreamError):
    """Raised by gateways when no session exists for a chat id."""

    def __init__(self, chat_id: str) -> None:
        self.chat_id = chat_id
        super().__init__(f"session not found: {chat_id}")


class SessionLookupError(ChatStreamError):
    """Raised when a gateway lookup fails for any reason other than not-found."""


class PersistenceError(ChatStreamError):
    """Raised when a gateway fails to create or save a session."""


class MessageCreationError(ChatStreamError):
    """Raised when a message built during a completion fails validation."""


class ProviderRequestError(ChatStreamError):
    """Raised when the provider stream cannot be opened."""


class StreamingError(ChatStreamError):
    """Raised when the provider stream fails after it was opened."""


class CompletionCanceledError(ChatStreamError):
    """Raised when the caller cancels an in-flight completion."""
