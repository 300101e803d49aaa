"""Token counters — model-aware cost of a piece of text."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import tiktoken

_FALLBACK_ENCODING = "cl100k_base"


class TokenCounter(ABC):
    """Counts how many budget units a text consumes for a given model."""

    @abstractmethod
    def count(self, model_id: str, text: str) -> int:
        """Return the token cost of *text* under *model_id* (always >= 0)."""


class TiktokenCounter(TokenCounter):
    """BPE token counts via ``tiktoken``.

    Encodings are resolved per model on first use and cached. Models unknown
    to tiktoken fall back to ``cl100k_base``.
    """

    def __init__(self, fallback_encoding: str = _FALLBACK_ENCODING) -> None:
        self._fallback = fallback_encoding
        self._encodings: dict[str, Any] = {}

    def _encoding_for(self, model_id: str) -> Any:
        enc = self._encodings.get(model_id)
        if enc is None:
            try:
                enc = tiktoken.encoding_for_model(model_id)
            except KeyError:
                enc = tiktoken.get_encoding(self._fallback)
            self._encodings[model_id] = enc
        return enc

    def count(self, model_id: str, text: str) -> int:
        if not text:
            return 0
        return len(self._encoding_for(model_id).encode(text))


class WordTokenCounter(TokenCounter):
    """One token per whitespace-separated word. Deterministic, model-agnostic."""

    def count(self, model_id: str, text: str) -> int:
        return len(text.split())

