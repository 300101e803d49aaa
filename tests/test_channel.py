"""Tests for the bounded output channel."""

from __future__ import annotations

import asyncio

import pytest

from chatstream.channel import CompletionChunk, OutputChannel


def _chunk(content: str) -> CompletionChunk:
    return CompletionChunk(chat_id="c", user_id="u", content=content)


def test_maxsize_must_be_positive():
    with pytest.raises(ValueError, match="maxsize must be positive"):
        OutputChannel(maxsize=0)


@pytest.mark.asyncio
async def test_iteration_yields_in_order_until_closed():
    channel = OutputChannel()
    await channel.publish(_chunk("a"))
    await channel.publish(_chunk("ab"))
    await channel.close()

    received = [c.content async for c in channel]
    assert received == ["a", "ab"]
    assert channel.closed


@pytest.mark.asyncio
async def test_publish_after_close_raises():
    channel = OutputChannel()
    await channel.close()
    await channel.close()
    with pytest.raises(RuntimeError, match="closed"):
        await channel.publish(_chunk("x"))


@pytest.mark.asyncio
async def test_publish_blocks_when_full():
    channel = OutputChannel(maxsize=1)
    await channel.publish(_chunk("first"))

    pending = asyncio.ensure_future(channel.publish(_chunk("second")))
    await asyncio.sleep(0.01)
    assert not pending.done()

    assert [c.content for c in channel.drain()] == ["first"]
    await asyncio.wait_for(pending, timeout=1)
    assert [c.content for c in channel.drain()] == ["second"]


@pytest.mark.asyncio
async def test_consumer_task_receives_everything():
    channel = OutputChannel(maxsize=2)

    async def consume() -> list[str]:
        return [c.content async for c in channel]

    consumer = asyncio.ensure_future(consume())
    for text in ("a", "ab", "abc", "abcd"):
        await channel.publish(_chunk(text))
    await channel.close()

    assert await consumer == ["a", "ab", "abc", "abcd"]
