"""Streaming completion orchestrator — one user turn in, one assistant turn out.

Each :meth:`CompletionOrchestrator.execute` call walks a small state machine::

    resolving -> requesting -> streaming -> finalizing -> persisting -> persisted

and fails into ``failed`` from any of them. Cumulative snapshots are pushed
to the output channel while the provider streams. The session is written
back only after the assistant turn has been finalized.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable
from typing import TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .channel import CompletionChunk, OutputChannel
from .config import CompletionConfigInput
from .errors import (
    ChatStreamError,
    CompletionCanceledError,
    MessageCreationError,
    PersistenceError,
    ProviderRequestError,
    SessionLookupError,
    SessionNotFoundError,
    StreamingError,
    ValidationError,
)
from .fsm import CompletionStage, CompletionState
from .gateway import InMemorySessionGateway, SessionGateway
from .message import Message
from .provider import (
    ChatRole,
    CompletionRequest,
    ProviderError,
    StreamDelta,
    StreamingProvider,
)
from .provider_factory import ProviderFactory
from .session import Session
from .telemetry import get_default_tracer, trace_completion, trace_persist, trace_provider_stream
from .tokenizer import TiktokenCounter, TokenCounter

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Provider failures surfaced as request/stream errors.
_TRANSPORT_ERRORS = (ProviderError, OSError)


class CompletionInput(BaseModel):
    """One user turn addressed to a chat."""

    chat_id: str = Field(min_length=1)
    user_id: str
    user_message: str
    config: CompletionConfigInput = Field(default_factory=CompletionConfigInput)


class CompletionOrchestrator:
    """Drives the request/response cycle for a single chat turn.

    The orchestrator itself holds no per-chat state, so one instance can
    serve concurrent invocations for different chats. Two invocations for
    the same chat race at the gateway.
    """

    def __init__(
        self,
        gateway: SessionGateway | None = None,
        provider: StreamingProvider | None = None,
        channel: OutputChannel | None = None,
        token_counter: TokenCounter | None = None,
    ) -> None:
        self._gateway = gateway if gateway is not None else InMemorySessionGateway()
        self._provider = provider if provider is not None else ProviderFactory.create()
        self._channel = channel if channel is not None else OutputChannel()
        self._counter = token_counter if token_counter is not None else TiktokenCounter()

    @property
    def channel(self) -> OutputChannel:
        return self._channel

    async def execute(
        self,
        request: CompletionInput,
        cancel: asyncio.Event | None = None,
    ) -> CompletionChunk:
        """Run one turn and return the final cumulative output.

        Raises:
            ChatStreamError: A subclass naming what went wrong; ``stage`` is
                the stage that failed. Nothing is persisted unless the whole
                exchange was finalized.
        """
        state = CompletionState()
        with trace_completion(request.chat_id):
            try:
                state = self._advance(state, CompletionStage.RESOLVING)
                session, is_new = await self._resolve(request)
                self._add_turn(session, ChatRole.USER, request.user_message)

                state = self._advance(state, CompletionStage.REQUESTING)
                self._check_canceled(cancel)
                with trace_provider_stream(session.config.model.name):
                    stream = await self._open_stream(session, cancel)
                    state = self._advance(state, CompletionStage.STREAMING)
                    content = await self._consume(stream, request, cancel)

                state = self._advance(state, CompletionStage.FINALIZING)
                self._add_turn(session, ChatRole.ASSISTANT, content)

                state = self._advance(state, CompletionStage.PERSISTING)
                await self._persist(session, is_new)
                state = self._advance(state, CompletionStage.PERSISTED)
            except ChatStreamError as exc:
                if exc.stage is None:
                    exc.stage = state.stage.value
                logger.warning(
                    "completion for chat %s failed at %s: %s", request.chat_id, exc.stage, exc
                )
                self._advance(state, CompletionStage.FAILED)
                raise

        return CompletionChunk(chat_id=request.chat_id, user_id=request.user_id, content=content)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _resolve(self, request: CompletionInput) -> tuple[Session, bool]:
        """Load the session for the chat, or build a fresh one if unknown."""
        try:
            return await self._gateway.find_by_id(request.chat_id), False
        except SessionNotFoundError:
            pass
        except Exception as exc:
            msg = f"could not fetch chat {request.chat_id}: {exc}"
            raise SessionLookupError(msg) from exc

        session = self._new_session(request)
        logger.info("created session %s for user %s", session.id, session.user_id)
        return session, True

    def _new_session(self, request: CompletionInput) -> Session:
        cfg = request.config
        try:
            chat_config = cfg.chat_config()
        except PydanticValidationError as exc:
            msg = f"invalid chat configuration: {exc.errors()[0]['msg']}"
            raise ValidationError(msg) from exc

        try:
            system = Message.create(
                ChatRole.SYSTEM, cfg.initial_system_message, chat_config.model, self._counter
            )
        except ValidationError as exc:
            msg = f"could not create initial message: {exc}"
            raise MessageCreationError(msg) from exc

        return Session.create(
            request.user_id, system, chat_config, session_id=request.chat_id
        )

    def _add_turn(self, session: Session, role: ChatRole, content: str) -> None:
        try:
            message = Message.create(role, content, session.config.model, self._counter)
        except ValidationError as exc:
            msg = f"could not create {role} message: {exc}"
            raise MessageCreationError(msg) from exc

        evicted = session.add_message(message)
        if evicted:
            logger.debug(
                "session %s evicted %d message(s) to fit %d tokens",
                session.id, len(evicted), session.config.model.max_tokens,
            )

    def _build_request(self, session: Session) -> CompletionRequest:
        cfg = session.config
        return CompletionRequest(
            model=cfg.model.name,
            messages=[m.to_chat_message() for m in session.messages()],
            temperature=cfg.temperature,
            top_p=cfg.top_p,
            n=cfg.n,
            stop=list(cfg.stop),
            max_tokens=cfg.max_tokens,
            presence_penalty=cfg.presence_penalty,
            frequency_penalty=cfg.frequency_penalty,
            stream=True,
        )

    async def _open_stream(
        self, session: Session, cancel: asyncio.Event | None
    ) -> AsyncIterator[StreamDelta]:
        request = self._build_request(session)
        try:
            return await self._race(self._provider.stream_completion(request), cancel)
        except _TRANSPORT_ERRORS as exc:
            msg = f"failed to send request to {self._provider.name()}: {exc}"
            raise ProviderRequestError(msg) from exc

    async def _consume(
        self,
        stream: AsyncIterator[StreamDelta],
        request: CompletionInput,
        cancel: asyncio.Event | None,
    ) -> str:
        """Accumulate deltas, publishing a cumulative snapshot after each one."""
        parts: list[str] = []
        try:
            while True:
                try:
                    delta = await self._race(_next_delta(stream), cancel)
                except _TRANSPORT_ERRORS as exc:
                    msg = f"error streaming response after {len(parts)} delta(s): {exc}"
                    raise StreamingError(msg) from exc
                if delta is None:
                    break

                parts.append(delta.content)
                chunk = CompletionChunk(
                    chat_id=request.chat_id,
                    user_id=request.user_id,
                    content="".join(parts),
                )
                await self._race(self._channel.publish(chunk), cancel)
        finally:
            await _close_stream(stream)
        return "".join(parts)

    async def _persist(self, session: Session, is_new: bool) -> None:
        with trace_persist(session.id):
            try:
                if is_new:
                    await self._gateway.create(session)
                else:
                    await self._gateway.save(session)
            except Exception as exc:
                msg = f"could not save chat {session.id}: {exc}"
                raise PersistenceError(msg) from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _advance(state: CompletionState, target: CompletionStage) -> CompletionState:
        new_state = state.transition(target)
        get_default_tracer().record_event("completion/stage", {"stage": target.value})
        return new_state

    @staticmethod
    def _check_canceled(cancel: asyncio.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            msg = "completion canceled by caller"
            raise CompletionCanceledError(msg)

    @staticmethod
    async def _race(awaitable: Awaitable[T], cancel: asyncio.Event | None) -> T:
        """Await *awaitable* unless *cancel* is set first.

        On cancellation the pending work is cancelled (and any stream it
        already produced is closed) before :class:`CompletionCanceledError`
        is raised.
        """
        if cancel is None:
            return await awaitable
        CompletionOrchestrator._check_canceled(cancel)

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            await _abandon(work)
            raise
        finally:
            waiter.cancel()

        if cancel.is_set():
            await _abandon(work)
            msg = "completion canceled by caller"
            raise CompletionCanceledError(msg)
        return work.result()


async def _abandon(work: asyncio.Future) -> None:
    """Cancel *work* and wait for it to unwind, closing any stream it produced.

    The stream must not be closed while *work* is still iterating it.
    """
    if not work.done():
        work.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await work
    elif not work.cancelled() and work.exception() is None:
        await _close_stream(work.result())


async def _next_delta(stream: AsyncIterator[StreamDelta]) -> StreamDelta | None:
    """Next delta from *stream*, or None at end-of-stream."""
    try:
        return await anext(stream)
    except StopAsyncIteration:
        return None


async def _close_stream(stream: object) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()
