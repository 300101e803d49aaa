"""Provider factory — deterministic provider selection from environment."""

from __future__ import annotations

import os

from .openai_provider import OpenAICompatibleProvider
from .provider import StreamingProvider, StubStreamingProvider

# Valid provider names for CHATSTREAM_LLM_PROVIDER
_VALID_PROVIDERS = frozenset({"openai", "stub"})


class ProviderFactory:
    """Creates the streaming provider named by configuration.

    Resolution logic:
        1. Read ``CHATSTREAM_LLM_PROVIDER`` env var (openai | stub).
        2. If set: return that exact provider.
        3. If unset: return openai when ``CHATSTREAM_OPENAI_API_KEY`` is set,
           stub otherwise.
    """

    @staticmethod
    def create() -> StreamingProvider:
        """Create a provider based on ``CHATSTREAM_LLM_PROVIDER``.

        Raises:
            ValueError: If ``CHATSTREAM_LLM_PROVIDER`` is set to an unknown value.
        """
        env_provider = os.environ.get("CHATSTREAM_LLM_PROVIDER", "").strip().lower()

        if env_provider:
            return ProviderFactory._create_explicit(env_provider)

        if os.environ.get("CHATSTREAM_OPENAI_API_KEY"):
            return OpenAICompatibleProvider()
        return StubStreamingProvider()

    @staticmethod
    def _create_explicit(provider_name: str) -> StreamingProvider:
        if provider_name not in _VALID_PROVIDERS:
            msg = (
                f"Unknown provider '{provider_name}'. "
                f"Valid values for CHATSTREAM_LLM_PROVIDER: {', '.join(sorted(_VALID_PROVIDERS))}"
            )
            raise ValueError(msg)

        if provider_name == "openai":
            return OpenAICompatibleProvider()
        return StubStreamingProvider()

    @staticmethod
    def describe(provider: StreamingProvider) -> str:
        """Return a human-readable description of a provider."""
        if isinstance(provider, OpenAICompatibleProvider):
            return f"OpenAICompatibleProvider (base_url={provider.base_url})"
        if isinstance(provider, StubStreamingProvider):
            return "StubStreamingProvider (scripted deltas)"
        return type(provider).__name__
