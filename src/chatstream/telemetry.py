"""OpenTelemetry tracing for completion invocations.

Spans cover one ``execute`` call, the provider stream inside it and the
gateway write. Stage changes are recorded as events on the active span.
Tracing is off (a ``NoOpTracer``) until :func:`configure_tracing` installs an
exporter, or ``CHATSTREAM_TRACE_EXPORTER`` names one.
"""

from __future__ import annotations

import contextlib
import os
from collections.abc import Generator
from dataclasses import dataclass

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.trace import NoOpTracer, Span, Tracer

_EXPORTERS = ("none", "otlp", "stdout")

SpanAttributes = dict[str, str | int | float | bool]

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class TelemetryConfig:
    """Exporter settings for chatstream tracing."""

    service_name: str = "chatstream"
    enabled: bool = True
    exporter: str = "none"  # "stdout" | "otlp" | "none"
    otlp_endpoint: str = "http://localhost:4317"

    @classmethod
    def from_env(cls) -> TelemetryConfig:
        """Read ``CHATSTREAM_TRACE_EXPORTER`` and ``CHATSTREAM_OTLP_ENDPOINT``."""
        defaults = cls()
        return cls(
            service_name=os.environ.get("CHATSTREAM_SERVICE_NAME", defaults.service_name),
            exporter=os.environ.get("CHATSTREAM_TRACE_EXPORTER", defaults.exporter).strip().lower(),
            otlp_endpoint=os.environ.get("CHATSTREAM_OTLP_ENDPOINT", defaults.otlp_endpoint),
        )


# ---------------------------------------------------------------------------
# ChatStreamTracer
# ---------------------------------------------------------------------------


class ChatStreamTracer:
    """Owns the ``TracerProvider`` for one exporter configuration."""

    def __init__(self, config: TelemetryConfig | None = None) -> None:
        self._config = config or TelemetryConfig()
        self._provider: TracerProvider | None = None
        self._tracer: Tracer = NoOpTracer()

    @property
    def exporting(self) -> bool:
        """True once :meth:`init` has installed a real exporter."""
        return self._provider is not None

    def init(self) -> None:
        """Build the provider for the configured exporter.

        Raises:
            ValueError: If the exporter name is unknown.
            RuntimeError: If ``otlp`` is requested without the ``otlp`` extra.
        """
        cfg = self._config
        if cfg.exporter not in _EXPORTERS:
            msg = f"Unknown exporter '{cfg.exporter}'. Valid values: {', '.join(_EXPORTERS)}"
            raise ValueError(msg)
        if not cfg.enabled or cfg.exporter == "none":
            return

        provider = TracerProvider(resource=Resource.create({"service.name": cfg.service_name}))
        provider.add_span_processor(self._make_processor(cfg))
        self._provider = provider
        self._tracer = provider.get_tracer("chatstream")

    @staticmethod
    def _make_processor(cfg: TelemetryConfig) -> SpanProcessor:
        if cfg.exporter == "stdout":
            from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

            return SimpleSpanProcessor(ConsoleSpanExporter())

        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        except ImportError as exc:
            msg = "otlp exporter requires the 'otlp' extra: pip install 'chatstream[otlp]'"
            raise RuntimeError(msg) from exc
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        return BatchSpanProcessor(OTLPSpanExporter(endpoint=cfg.otlp_endpoint, insecure=True))

    @contextlib.contextmanager
    def span(self, name: str, attributes: SpanAttributes | None = None) -> Generator[Span, None, None]:
        """Open *name* as the current span, tagged with *attributes*."""
        with self._tracer.start_as_current_span(name, attributes=attributes) as s:
            yield s

    def record_event(self, name: str, attributes: SpanAttributes | None = None) -> None:
        """Add an event to the active span; a no-op when nothing is recording."""
        current = trace.get_current_span()
        if current.is_recording():
            current.add_event(name, attributes or {})

    def shutdown(self) -> None:
        """Flush pending spans. Safe to call more than once."""
        if self._provider is not None:
            self._provider.shutdown()
            self._provider = None
            self._tracer = NoOpTracer()


# ---------------------------------------------------------------------------
# Module default tracer
# ---------------------------------------------------------------------------

_DEFAULT_TRACER: ChatStreamTracer | None = None


def get_default_tracer() -> ChatStreamTracer:
    """Return the process tracer, building it from the environment on first use."""
    global _DEFAULT_TRACER  # noqa: PLW0603
    if _DEFAULT_TRACER is None:
        _DEFAULT_TRACER = ChatStreamTracer(TelemetryConfig.from_env())
        _DEFAULT_TRACER.init()
    return _DEFAULT_TRACER


def configure_tracing(config: TelemetryConfig) -> ChatStreamTracer:
    """Replace the default tracer with one built from *config*."""
    global _DEFAULT_TRACER  # noqa: PLW0603
    tracer = ChatStreamTracer(config)
    tracer.init()
    if _DEFAULT_TRACER is not None:
        _DEFAULT_TRACER.shutdown()
    _DEFAULT_TRACER = tracer
    return tracer


# ---------------------------------------------------------------------------
# Spans used by the orchestrator
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def trace_completion(chat_id: str) -> Generator[Span, None, None]:
    with get_default_tracer().span("completion/execute", {"chat.id": chat_id}) as s:
        yield s


@contextlib.contextmanager
def trace_provider_stream(model: str) -> Generator[Span, None, None]:
    with get_default_tracer().span("provider/stream", {"llm.model": model}) as s:
        yield s


@contextlib.contextmanager
def trace_persist(chat_id: str) -> Generator[Span, None, None]:
    with get_default_tracer().span("gateway/persist", {"chat.id": chat_id}) as s:
        yield s
