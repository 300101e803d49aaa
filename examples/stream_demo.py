"""chatstream end-to-end demo.

Demonstrates a full streaming turn:
1. Orchestrator creates a session for an unknown chat id
2. Stub provider streams deltas; a consumer task prints cumulative snapshots
3. A large message forces eviction of the oldest turns
4. Session is persisted to SQLite and reloaded

Uses the stub provider and a word-based token counter, so no network is needed.

Run: python examples/stream_demo.py
"""

from __future__ import annotations

import asyncio
import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from chatstream import (
    CompletionConfigInput,
    CompletionInput,
    CompletionOrchestrator,
    OutputChannel,
    SqliteSessionGateway,
    StubStreamingProvider,
    WordTokenCounter,
)


def _check(condition: bool, msg: str) -> None:  # noqa: FBT001
    """Raise RuntimeError if *condition* is False (demo validation)."""
    if not condition:
        raise RuntimeError(msg)


async def _print_snapshots(channel: OutputChannel) -> int:
    count = 0
    async for chunk in channel:
        count += 1
        print(f"    [{chunk.chat_id}] {chunk.content!r}")
    return count


async def run_demo() -> None:
    print("=" * 60)
    print("chatstream streaming demo")
    print("=" * 60)

    config = CompletionConfigInput(
        model="demo-model",
        model_max_tokens=40,
        initial_system_message="You are a terse assistant that answers in one line.",
    )

    with tempfile.TemporaryDirectory() as tmpdir:
        gateway = SqliteSessionGateway(Path(tmpdir) / "sessions.db")
        channel = OutputChannel(maxsize=8)
        orchestrator = CompletionOrchestrator(
            gateway=gateway,
            provider=StubStreamingProvider(["Stream", "ing ", "works", "."]),
            channel=channel,
            token_counter=WordTokenCounter(),
        )
        consumer = asyncio.ensure_future(_print_snapshots(channel))

        # ------------------------------------------------------------------
        # Step 1: First turn on an unknown chat
        # ------------------------------------------------------------------
        print("\n[1/3] First turn (new session)...")
        result = await orchestrator.execute(
            CompletionInput(chat_id="demo", user_id="alice", user_message="Does it stream?", config=config)
        )
        print(f"  Final     : {result.content!r}")
        _check(result.content == "Streaming works.", "Unexpected final content")

        # ------------------------------------------------------------------
        # Step 2: Large turn forces eviction
        # ------------------------------------------------------------------
        print("\n[2/3] Large turn (forces eviction)...")
        long_message = " ".join(["word"] * 30)
        await orchestrator.execute(
            CompletionInput(chat_id="demo", user_id="alice", user_message=long_message, config=config)
        )

        await channel.close()
        snapshots = await consumer
        _check(snapshots == 8, "Expected four snapshots per turn")  # noqa: PLR2004

        # ------------------------------------------------------------------
        # Step 3: Reload from SQLite
        # ------------------------------------------------------------------
        print("\n[3/3] Reloading session from SQLite...")
        session = await gateway.find_by_id("demo")
        print(f"  Retained  : {session.count_retained_messages()} message(s)")
        print(f"  Evicted   : {len(session.evicted_messages())} message(s)")
        print(f"  Tokens    : {session.token_usage()} / {session.config.model.max_tokens}")
        _check(session.token_usage() <= session.config.model.max_tokens, "Budget exceeded")
        _check(len(session.evicted_messages()) > 0, "Expected evicted history")
        gateway.close()

    print("\n" + "=" * 60)
    print("Demo complete -- all checks passed!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(run_demo())
