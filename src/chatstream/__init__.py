"""chatstream — token-bounded chat sessions with streaming completions."""

from __future__ import annotations

__version__ = "0.1.0"

from .buffer import ConversationBuffer
from .channel import CompletionChunk, OutputChannel
from .config import ChatConfig, CompletionConfigInput, ModelSpec
from .errors import (
    ChatStreamError,
    CompletionCanceledError,
    MessageCreationError,
    OversizedMessageError,
    PersistenceError,
    ProviderRequestError,
    SessionEndedError,
    SessionLookupError,
    SessionNotFoundError,
    StreamingError,
    ValidationError,
)
from .fsm import CompletionStage, CompletionState
from .gateway import InMemorySessionGateway, SessionGateway, SqliteSessionGateway
from .message import Message
from .openai_provider import OpenAICompatibleProvider
from .orchestrator import CompletionInput, CompletionOrchestrator
from .provider import (
    ChatMessage,
    ChatRole,
    CompletionRequest,
    ProviderCapabilities,
    ProviderError,
    StreamDelta,
    StreamingProvider,
    StubStreamingProvider,
)
from .provider_factory import ProviderFactory
from .session import Session, SessionRecord, SessionStatus
from .telemetry import ChatStreamTracer, TelemetryConfig, configure_tracing
from .tokenizer import TiktokenCounter, TokenCounter, WordTokenCounter

__all__ = [
    "ChatConfig",
    "ChatMessage",
    "ChatRole",
    "ChatStreamError",
    "ChatStreamTracer",
    "CompletionCanceledError",
    "CompletionChunk",
    "CompletionConfigInput",
    "CompletionInput",
    "CompletionOrchestrator",
    "CompletionRequest",
    "CompletionStage",
    "CompletionState",
    "ConversationBuffer",
    "InMemorySessionGateway",
    "Message",
    "MessageCreationError",
    "ModelSpec",
    "OpenAICompatibleProvider",
    "OutputChannel",
    "OversizedMessageError",
    "PersistenceError",
    "ProviderCapabilities",
    "ProviderError",
    "ProviderFactory",
    "ProviderRequestError",
    "Session",
    "SessionEndedError",
    "SessionGateway",
    "SessionLookupError",
    "SessionNotFoundError",
    "SessionRecord",
    "SessionStatus",
    "SqliteSessionGateway",
    "StreamDelta",
    "StreamingError",
    "StreamingProvider",
    "StubStreamingProvider",
    "TelemetryConfig",
    "TiktokenCounter",
    "TokenCounter",
    "ValidationError",
    "WordTokenCounter",
    "configure_tracing",
]
