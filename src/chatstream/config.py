"""Explicit configuration value objects handed to every Session."""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field

_DEFAULT_MODEL = "gpt-4o-mini"
_DEFAULT_MODEL_MAX_TOKENS = 8192
_DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


class ModelSpec(BaseModel):
    """Model identity and its context-window token ceiling."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    max_tokens: int = Field(gt=0)


class ChatConfig(BaseModel):
    """Fixed per-session generation parameters.

    ``temperature`` is range-checked by :meth:`Session.create`, not here, so a
    bad value surfaces as a session validation failure.
    """

    model_config = ConfigDict(frozen=True)

    model: ModelSpec
    temperature: float = 1.0
    top_p: float = 1.0
    n: int = 1
    stop: tuple[str, ...] = ()
    max_tokens: int | None = None
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    pin_system_message: bool = False


class CompletionConfigInput(BaseModel):
    """Caller-supplied configuration used when a chat has no session yet."""

    model_config = ConfigDict(protected_namespaces=())

    model: str = _DEFAULT_MODEL
    model_max_tokens: int = _DEFAULT_MODEL_MAX_TOKENS
    temperature: float = 1.0
    top_p: float = 1.0
    n: int = 1
    stop: list[str] = Field(default_factory=list)
    max_tokens: int | None = None
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    initial_system_message: str = _DEFAULT_SYSTEM_PROMPT
    pin_system_message: bool = False

    def to_model_spec(self) -> ModelSpec:
        return ModelSpec(name=self.model, max_tokens=self.model_max_tokens)

    def chat_config(self) -> ChatConfig:
        return ChatConfig(
            model=self.to_model_spec(),
            temperature=self.temperature,
            top_p=self.top_p,
            n=self.n,
            stop=tuple(self.stop),
            max_tokens=self.max_tokens,
            presence_penalty=self.presence_penalty,
            frequency_penalty=self.frequency_penalty,
            pin_system_message=self.pin_system_message,
        )

    @classmethod
    def from_env(cls) -> CompletionConfigInput:
        """Build a config from ``CHATSTREAM_*`` environment variables.

        Recognised variables:
            - ``CHATSTREAM_MODEL``: model name (default ``gpt-4o-mini``)
            - ``CHATSTREAM_MODEL_MAX_TOKENS``: context ceiling (default 8192)
            - ``CHATSTREAM_TEMPERATURE`` / ``CHATSTREAM_TOP_P``
            - ``CHATSTREAM_MAX_TOKENS``: max output tokens (unset = provider default)
            - ``CHATSTREAM_SYSTEM_PROMPT``: initial system message
            - ``CHATSTREAM_PIN_SYSTEM_MESSAGE``: ``1``/``true`` to never evict it
        """
        env = os.environ
        max_tokens = env.get("CHATSTREAM_MAX_TOKENS", "").strip()
        pin = env.get("CHATSTREAM_PIN_SYSTEM_MESSAGE", "").strip().lower()
        return cls(
            model=env.get("CHATSTREAM_MODEL", _DEFAULT_MODEL),
            model_max_tokens=int(
                env.get("CHATSTREAM_MODEL_MAX_TOKENS", str(_DEFAULT_MODEL_MAX_TOKENS))
            ),
            temperature=float(env.get("CHATSTREAM_TEMPERATURE", "1.0")),
            top_p=float(env.get("CHATSTREAM_TOP_P", "1.0")),
            max_tokens=int(max_tokens) if max_tokens else None,
            initial_system_message=env.get("CHATSTREAM_SYSTEM_PROMPT", _DEFAULT_SYSTEM_PROMPT),
            pin_system_message=pin in ("1", "true", "yes"),
        )
