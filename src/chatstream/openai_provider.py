"""OpenAI-compatible provider — streams ``/chat/completions`` over SSE with httpx."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import AsyncIterator
from typing import Any

import httpx

from .provider import (
    CompletionRequest,
    ProviderCapabilities,
    ProviderError,
    StreamDelta,
    StreamingProvider,
)

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "https://api.openai.com/v1"
_DEFAULT_TIMEOUT = 300
_DONE = "[DONE]"
_END = object()


class OpenAICompatibleProvider(StreamingProvider):
    """Streaming provider for any OpenAI-compatible chat completions endpoint.

    Configuration via environment variables:
        - ``CHATSTREAM_OPENAI_BASE_URL``: API root (default ``https://api.openai.com/v1``)
        - ``CHATSTREAM_OPENAI_API_KEY``: bearer token (optional for local servers)
        - ``CHATSTREAM_LLM_TIMEOUT_SEC``: request timeout in seconds (default 300)

    An ``httpx.AsyncClient`` may be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise one is created lazily and owned by
    the provider.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (
            base_url or os.environ.get("CHATSTREAM_OPENAI_BASE_URL", _DEFAULT_BASE_URL)
        ).rstrip("/")
        self._api_key = api_key or os.environ.get("CHATSTREAM_OPENAI_API_KEY", "")
        self._timeout = timeout or float(
            os.environ.get("CHATSTREAM_LLM_TIMEOUT_SEC", str(_DEFAULT_TIMEOUT))
        )
        self._client = client
        self._owns_client = client is None

    def name(self) -> str:
        return "openai"

    @property
    def base_url(self) -> str:
        return self._base_url

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(streaming=True, stop_sequences=True)

    async def stream_completion(self, request: CompletionRequest) -> AsyncIterator[StreamDelta]:
        """POST the request with ``stream=true`` and return a delta iterator.

        Raises:
            ProviderError: On connection failures or a non-2xx status.
        """
        client = self._get_client()
        http_request = client.build_request(
            "POST",
            f"{self._base_url}/chat/completions",
            json=self._build_payload(request),
            headers=self._headers(),
        )
        try:
            response = await client.send(http_request, stream=True)
        except httpx.HTTPError as exc:
            msg = f"request to {self._base_url} failed: {exc}"
            raise ProviderError(msg) from exc

        if response.status_code >= 400:
            body = await response.aread()
            await response.aclose()
            detail = body.decode("utf-8", errors="replace").strip() or response.reason_phrase
            msg = f"provider returned HTTP {response.status_code}: {detail}"
            raise ProviderError(msg, status_code=response.status_code)

        logger.debug("opened completion stream for model %s", request.model)
        return self._iterate(response)

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "text/event-stream"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    @staticmethod
    def _build_payload(request: CompletionRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": [m.model_dump(mode="json") for m in request.messages],
            "n": request.n,
            "presence_penalty": request.presence_penalty,
            "frequency_penalty": request.frequency_penalty,
            "stream": True,
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.top_p is not None:
            payload["top_p"] = request.top_p
        if request.stop:
            payload["stop"] = request.stop
        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens
        return payload

    async def _iterate(self, response: httpx.Response) -> AsyncIterator[StreamDelta]:
        try:
            async for line in response.aiter_lines():
                delta = self._parse_sse_line(line)
                if delta is _END:
                    return
                if delta is not None:
                    yield delta
        except httpx.HTTPError as exc:
            msg = f"stream interrupted: {exc}"
            raise ProviderError(msg) from exc
        finally:
            await response.aclose()

    @staticmethod
    def _parse_sse_line(line: str) -> StreamDelta | object | None:
        """Decode one SSE line into a delta, ``_END``, or None to skip it.

        Only ``data:`` fields carry payloads. Role-only and empty-content
        chunks are skipped.
        """
        line = line.strip()
        if not line.startswith("data:"):
            return None
        data = line[len("data:"):].strip()
        if data == _DONE:
            return _END
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError as exc:
            raise _malformed(data) from exc
        if not isinstance(chunk, dict):
            raise _malformed(data)

        if "error" in chunk:
            err = chunk["error"]
            detail = err.get("message", err) if isinstance(err, dict) else err
            msg = f"provider error mid-stream: {detail}"
            raise ProviderError(msg)

        choices = chunk.get("choices") or []
        if not choices:
            return None
        choice = choices[0] if isinstance(choices, list) else None
        delta = (choice.get("delta") or {}) if isinstance(choice, dict) else None
        if not isinstance(delta, dict):
            raise _malformed(data)
        content = delta.get("content")
        if not content:
            return None
        if not isinstance(content, str):
            raise _malformed(data)
        return StreamDelta(content=content, finish_reason=choice.get("finish_reason"))


def _malformed(data: str) -> ProviderError:
    return ProviderError(f"malformed stream chunk: {data[:200]}")

