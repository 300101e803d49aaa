"""Tests for session gateways."""

from __future__ import annotations

from pathlib import Path

import pytest

from chatstream.config import ChatConfig, ModelSpec
from chatstream.errors import SessionNotFoundError
from chatstream.gateway import InMemorySessionGateway, SessionGateway, SqliteSessionGateway
from chatstream.message import Message
from chatstream.session import Session, SessionStatus
from chatstream.tokenizer import WordTokenCounter

_CONFIG = ChatConfig(model=ModelSpec(name="test-model", max_tokens=20), stop=("END",))
_COUNTER = WordTokenCounter()


def _make_session(session_id: str = "chat-1") -> Session:
    system = Message.create("system", "be brief please", _CONFIG.model, _COUNTER)
    return Session.create("user-1", system, _CONFIG, session_id=session_id)


def _add(session: Session, role: str, words: int) -> None:
    session.add_message(Message.create(role, " ".join(["w"] * words), _CONFIG.model, _COUNTER))


@pytest.fixture(params=["memory", "sqlite"])
def gateway(request: pytest.FixtureRequest, tmp_path: Path) -> SessionGateway:
    if request.param == "memory":
        yield InMemorySessionGateway()
    else:
        gw = SqliteSessionGateway(tmp_path / "sessions.db")
        yield gw
        gw.close()


@pytest.mark.asyncio
async def test_find_unknown_raises_not_found(gateway: SessionGateway):
    with pytest.raises(SessionNotFoundError) as exc_info:
        await gateway.find_by_id("nope")
    assert exc_info.value.chat_id == "nope"


@pytest.mark.asyncio
async def test_create_then_find_round_trips(gateway: SessionGateway):
    session = _make_session()
    _add(session, "user", 10)
    _add(session, "assistant", 8)  # evicts the system message
    await gateway.create(session)

    loaded = await gateway.find_by_id("chat-1")
    assert loaded is not session
    assert loaded.user_id == "user-1"
    assert loaded.config == _CONFIG
    assert loaded.messages() == session.messages()
    assert loaded.evicted_messages() == session.evicted_messages()
    assert loaded.token_usage() == 18


@pytest.mark.asyncio
async def test_save_overwrites_existing(gateway: SessionGateway):
    session = _make_session()
    await gateway.create(session)
    _add(session, "user", 2)
    session.end()
    await gateway.save(session)

    loaded = await gateway.find_by_id("chat-1")
    assert loaded.count_retained_messages() == 2
    assert loaded.status == SessionStatus.ENDED


@pytest.mark.asyncio
async def test_save_unknown_session_raises(gateway: SessionGateway):
    with pytest.raises(SessionNotFoundError):
        await gateway.save(_make_session("ghost"))


@pytest.mark.asyncio
async def test_loaded_sessions_are_independent_copies():
    gateway = InMemorySessionGateway()
    await gateway.create(_make_session())
    first = await gateway.find_by_id("chat-1")
    _add(first, "user", 1)
    second = await gateway.find_by_id("chat-1")
    assert second.count_retained_messages() == 1
    assert "chat-1" in gateway
    assert len(gateway) == 1


@pytest.mark.asyncio
async def test_sqlite_persists_across_connections(tmp_path: Path):
    db = tmp_path / "sessions.db"
    gw = SqliteSessionGateway(db)
    await gw.create(_make_session())
    gw.close()

    reopened = SqliteSessionGateway(db)
    loaded = await reopened.find_by_id("chat-1")
    assert loaded.initial_system_message.content == "be brief please"
    reopened.close()
