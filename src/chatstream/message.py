"""Message — an immutable conversational turn with a precomputed token cost."""

from __future__ import annotations

import time
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .config import ModelSpec
from .errors import ValidationError
from .provider import ChatMessage, ChatRole
from .tokenizer import TokenCounter


class Message(BaseModel):
    """A single turn in a session. Frozen once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: ChatRole
    content: str = Field(min_length=1)
    token_cost: int = Field(ge=0)
    created_at: float = Field(default_factory=time.time, gt=0)

    @classmethod
    def create(
        cls,
        role: ChatRole | str,
        content: str,
        model: ModelSpec,
        counter: TokenCounter,
    ) -> Message:
        """Validate *role* and *content*, then cost the text for *model*.

        Raises:
            ValidationError: If the role is unknown, the content is empty or
                the creation timestamp could not be set.
        """
        try:
            role = ChatRole(role)
        except ValueError as exc:
            msg = f"invalid role: {role!r}"
            raise ValidationError(msg) from exc
        if not content:
            msg = "content is empty"
            raise ValidationError(msg)

        try:
            return cls(
                role=role,
                content=content,
                token_cost=counter.count(model.name, content),
            )
        except PydanticValidationError as exc:
            msg = f"invalid message: {exc.errors()[0]['msg']}"
            raise ValidationError(msg) from exc

    def to_chat_message(self) -> ChatMessage:
        """Project to the role+content pair sent to the provider."""
        return ChatMessage(role=self.role, content=self.content)
