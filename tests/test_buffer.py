"""Tests for the token-bounded conversation buffer."""

from __future__ import annotations

import pytest

from chatstream.buffer import ConversationBuffer
from chatstream.config import ModelSpec
from chatstream.errors import OversizedMessageError
from chatstream.message import Message
from chatstream.tokenizer import WordTokenCounter

_MODEL = ModelSpec(name="test-model", max_tokens=100)
_COUNTER = WordTokenCounter()


def _make_message(words: int, role: str = "user", tag: str = "w") -> Message:
    return Message.create(role, " ".join([tag] * words), _MODEL, _COUNTER)


def test_requires_positive_ceiling():
    with pytest.raises(ValueError, match="max_tokens must be positive"):
        ConversationBuffer(max_tokens=0)


def test_append_within_budget_keeps_everything():
    buf = ConversationBuffer(max_tokens=100)
    assert buf.append(_make_message(10)) == []
    assert buf.append(_make_message(20)) == []
    assert len(buf) == 2
    assert buf.token_usage() == 30
    assert buf.evicted() == []


def test_eviction_removes_from_front_in_order():
    buf = ConversationBuffer(max_tokens=30)
    first = _make_message(10, tag="a")
    second = _make_message(10, tag="b")
    third = _make_message(10, tag="c")
    for m in (first, second, third):
        buf.append(m)

    newest = _make_message(15, tag="d")
    removed = buf.append(newest)

    assert removed == [first, second]
    assert buf.evicted() == [first, second]
    assert buf.messages() == [third, newest]
    assert buf.token_usage() == 25


def test_evicted_is_exact_prefix_across_many_appends():
    buf = ConversationBuffer(max_tokens=50)
    appended: list[Message] = []
    for i in range(1, 15):
        msg = _make_message(i % 7 + 1, tag=f"t{i}")
        appended.append(msg)
        buf.append(msg)
        assert buf.token_usage() <= buf.max_tokens
        assert buf.token_usage() == sum(m.token_cost for m in buf.messages())
        # retained + evicted always reconstructs the append order
        assert buf.evicted() + buf.messages() == appended


def test_message_filling_entire_budget_evicts_all_others():
    buf = ConversationBuffer(max_tokens=20)
    buf.append(_make_message(5))
    buf.append(_make_message(5))
    big = _make_message(20)
    buf.append(big)
    assert buf.messages() == [big]
    assert buf.token_usage() == 20
    assert len(buf.evicted()) == 2


def test_oversized_message_rejected_without_mutation():
    buf = ConversationBuffer(max_tokens=20)
    kept = _make_message(5)
    buf.append(kept)

    with pytest.raises(OversizedMessageError) as exc_info:
        buf.append(_make_message(21))

    assert exc_info.value.token_cost == 21
    assert exc_info.value.available == 20
    assert buf.messages() == [kept]
    assert buf.evicted() == []
    assert buf.token_usage() == 5


def test_pinned_message_is_never_evicted():
    buf = ConversationBuffer(max_tokens=30)
    system = _make_message(10, role="system", tag="s")
    buf.append(system)
    buf.pin(system.id)
    old = _make_message(10, tag="o")
    buf.append(old)

    newest = _make_message(20, tag="n")
    removed = buf.append(newest)

    assert removed == [old]
    assert buf.messages() == [system, newest]
    assert buf.token_usage() == 30


def test_pinned_cost_reduces_available_budget():
    buf = ConversationBuffer(max_tokens=30)
    system = _make_message(10, role="system")
    buf.append(system)
    buf.pin(system.id)

    with pytest.raises(OversizedMessageError) as exc_info:
        buf.append(_make_message(21))
    assert exc_info.value.available == 20
    assert buf.messages() == [system]


def test_pin_unknown_message_raises():
    buf = ConversationBuffer(max_tokens=30)
    with pytest.raises(KeyError):
        buf.pin("missing")


def test_refresh_token_usage_matches_sum():
    msgs = [_make_message(3), _make_message(4)]
    buf = ConversationBuffer(max_tokens=100, retained=msgs)
    assert buf.token_usage() == 7
    assert buf.refresh_token_usage() == 7
    assert buf.refresh_token_usage() == buf.token_usage()


def test_messages_returns_copy():
    buf = ConversationBuffer(max_tokens=100)
    buf.append(_make_message(1))
    snapshot = buf.messages()
    snapshot.clear()
    assert len(buf) == 1


def test_large_user_message_evicts_unpinned_system_message():
    buf = ConversationBuffer(max_tokens=100)
    system = _make_message(10, role="system")
    buf.append(system)

    user = _make_message(95)
    buf.append(user)

    assert buf.token_usage() == 95
    assert buf.evicted() == [system]
    assert buf.messages() == [user]
