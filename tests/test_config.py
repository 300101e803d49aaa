"""Tests for configuration value objects."""

from __future__ import annotations

import pydantic
import pytest

from chatstream.config import ChatConfig, CompletionConfigInput, ModelSpec


def test_model_spec_requires_positive_ceiling():
    with pytest.raises(pydantic.ValidationError):
        ModelSpec(name="m", max_tokens=0)


def test_chat_config_from_input_uses_model_ceiling():
    cfg = CompletionConfigInput(
        model="gpt-4o-mini",
        model_max_tokens=4096,
        max_tokens=256,
        temperature=0.3,
        stop=["\n\n"],
        pin_system_message=True,
    ).chat_config()
    assert cfg.model == ModelSpec(name="gpt-4o-mini", max_tokens=4096)
    assert cfg.max_tokens == 256
    assert cfg.temperature == 0.3
    assert cfg.stop == ("\n\n",)
    assert cfg.pin_system_message is True


def test_chat_config_is_frozen():
    cfg = ChatConfig(model=ModelSpec(name="m", max_tokens=10))
    with pytest.raises(pydantic.ValidationError):
        cfg.top_p = 0.5  # type: ignore[misc]


def test_from_env_defaults(monkeypatch: pytest.MonkeyPatch):
    for var in (
        "CHATSTREAM_MODEL", "CHATSTREAM_MODEL_MAX_TOKENS", "CHATSTREAM_TEMPERATURE",
        "CHATSTREAM_TOP_P", "CHATSTREAM_MAX_TOKENS", "CHATSTREAM_SYSTEM_PROMPT",
        "CHATSTREAM_PIN_SYSTEM_MESSAGE",
    ):
        monkeypatch.delenv(var, raising=False)
    cfg = CompletionConfigInput.from_env()
    assert cfg.model == "gpt-4o-mini"
    assert cfg.model_max_tokens == 8192
    assert cfg.max_tokens is None
    assert cfg.pin_system_message is False
    assert cfg.initial_system_message


def test_from_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CHATSTREAM_MODEL", "llama3")
    monkeypatch.setenv("CHATSTREAM_MODEL_MAX_TOKENS", "2048")
    monkeypatch.setenv("CHATSTREAM_TEMPERATURE", "0.1")
    monkeypatch.setenv("CHATSTREAM_MAX_TOKENS", "128")
    monkeypatch.setenv("CHATSTREAM_SYSTEM_PROMPT", "Answer in French.")
    monkeypatch.setenv("CHATSTREAM_PIN_SYSTEM_MESSAGE", "true")
    cfg = CompletionConfigInput.from_env()
    assert cfg.model == "llama3"
    assert cfg.model_max_tokens == 2048
    assert cfg.temperature == 0.1
    assert cfg.max_tokens == 128
    assert cfg.initial_system_message == "Answer in French."
    assert cfg.pin_system_message is True
