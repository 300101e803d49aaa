"""Session — a token-bounded conversation with fixed generation settings."""

from __future__ import annotations

import uuid
from enum import StrEnum

from pydantic import BaseModel, Field

from .buffer import ConversationBuffer
from .config import ChatConfig
from .errors import SessionEndedError, ValidationError
from .message import Message
from .provider import ChatRole


class SessionStatus(StrEnum):
    ACTIVE = "active"
    ENDED = "ended"


class SessionRecord(BaseModel):
    """Serialisable snapshot of a Session, used by gateways."""

    id: str
    user_id: str
    status: SessionStatus
    config: ChatConfig
    initial_system_message: Message
    retained: list[Message] = Field(default_factory=list)
    evicted: list[Message] = Field(default_factory=list)
    pinned: list[str] = Field(default_factory=list)


class Session:
    """Wraps a ConversationBuffer with identity, ownership and lifecycle."""

    def __init__(
        self,
        session_id: str,
        user_id: str,
        initial_system_message: Message,
        config: ChatConfig,
        buffer: ConversationBuffer,
        status: SessionStatus = SessionStatus.ACTIVE,
    ) -> None:
        self.id = session_id
        self.user_id = user_id
        self.initial_system_message = initial_system_message
        self.config = config
        self.buffer = buffer
        self.status = status

    @classmethod
    def create(
        cls,
        user_id: str,
        initial_system_message: Message,
        config: ChatConfig,
        session_id: str | None = None,
    ) -> Session:
        """Validate the inputs and seed a new buffer with the system message.

        Raises:
            ValidationError: On an empty user id, a non-system initial message
                or a temperature outside ``[0, 2]``.
            OversizedMessageError: If the system message alone exceeds the
                model's token ceiling.
        """
        if not user_id:
            msg = "user id is empty"
            raise ValidationError(msg)
        if initial_system_message.role != ChatRole.SYSTEM:
            msg = f"initial message must have role 'system', got {initial_system_message.role!r}"
            raise ValidationError(msg)
        if not 0 <= config.temperature <= 2:
            msg = f"invalid temperature: {config.temperature}"
            raise ValidationError(msg)

        buffer = ConversationBuffer(max_tokens=config.model.max_tokens)
        buffer.append(initial_system_message)
        if config.pin_system_message:
            buffer.pin(initial_system_message.id)

        return cls(
            session_id=session_id or uuid.uuid4().hex,
            user_id=user_id,
            initial_system_message=initial_system_message,
            config=config,
            buffer=buffer,
        )

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def add_message(self, message: Message) -> list[Message]:
        """Append *message* to the buffer. Returns the messages it evicted.

        Raises:
            SessionEndedError: If the session has ended. Nothing is mutated.
            OversizedMessageError: See :meth:`ConversationBuffer.append`.
        """
        if not self.is_active:
            msg = f"session {self.id} has ended; no more messages allowed"
            raise SessionEndedError(msg)
        evicted = self.buffer.append(message)
        self.buffer.refresh_token_usage()
        return evicted

    def end(self) -> None:
        """Mark the session as ended. Ending twice is a no-op."""
        self.status = SessionStatus.ENDED

    def messages(self) -> list[Message]:
        return self.buffer.messages()

    def evicted_messages(self) -> list[Message]:
        return self.buffer.evicted()

    def count_retained_messages(self) -> int:
        return len(self.buffer)

    def token_usage(self) -> int:
        return self.buffer.token_usage()

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_record(self) -> SessionRecord:
        return SessionRecord(
            id=self.id,
            user_id=self.user_id,
            status=self.status,
            config=self.config,
            initial_system_message=self.initial_system_message,
            retained=self.buffer.messages(),
            evicted=self.buffer.evicted(),
            pinned=sorted(self.buffer.pinned_ids),
        )

    @classmethod
    def from_record(cls, record: SessionRecord) -> Session:
        buffer = ConversationBuffer(
            max_tokens=record.config.model.max_tokens,
            retained=record.retained,
            evicted=record.evicted,
            pinned=record.pinned,
        )
        return cls(
            session_id=record.id,
            user_id=record.user_id,
            initial_system_message=record.initial_system_message,
            config=record.config,
            buffer=buffer,
            status=record.status,
        )
