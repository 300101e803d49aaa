"""Conversation buffer — token-bounded sliding window over messages."""

from __future__ import annotations

from collections.abc import Iterable

from .errors import OversizedMessageError
from .message import Message


class ConversationBuffer:
    """Retained context window plus the history evicted to respect the ceiling.

    Eviction always takes the oldest retained message that is not pinned, and
    never the message being appended. A message that cannot fit even after
    evicting every unpinned message is rejected before insertion.
    """

    def __init__(
        self,
        max_tokens: int,
        retained: Iterable[Message] = (),
        evicted: Iterable[Message] = (),
        pinned: Iterable[str] = (),
    ) -> None:
        if max_tokens <= 0:
            msg = "max_tokens must be positive"
            raise ValueError(msg)
        self._max = max_tokens
        self._retained: list[Message] = list(retained)
        self._evicted: list[Message] = list(evicted)
        self._pinned: set[str] = set(pinned)
        self._token_usage = 0
        self.refresh_token_usage()

    @property
    def max_tokens(self) -> int:
        return self._max

    @property
    def pinned_ids(self) -> frozenset[str]:
        return frozenset(self._pinned)

    def __len__(self) -> int:
        return len(self._retained)

    def messages(self) -> list[Message]:
        """Retained messages, oldest first."""
        return list(self._retained)

    def evicted(self) -> list[Message]:
        """Evicted messages, in removal order."""
        return list(self._evicted)

    def token_usage(self) -> int:
        return self._token_usage

    def refresh_token_usage(self) -> int:
        """Recompute the usage from the retained messages and re-sync the cache."""
        self._token_usage = sum(m.token_cost for m in self._retained)
        return self._token_usage

    def pin(self, message_id: str) -> None:
        """Mark a retained message as never evictable."""
        if not any(m.id == message_id for m in self._retained):
            msg = f"message {message_id} is not retained"
            raise KeyError(msg)
        self._pinned.add(message_id)

    def append(self, message: Message) -> list[Message]:
        """Append *message*, evicting from the front until the ceiling holds.

        Returns the messages evicted by this call, oldest first.

        Raises:
            OversizedMessageError: If *message* alone exceeds the tokens left
                over by pinned messages. The buffer is left untouched.
        """
        pinned_cost = sum(m.token_cost for m in self._retained if m.id in self._pinned)
        available = self._max - pinned_cost
        if message.token_cost > available:
            raise OversizedMessageError(message.token_cost, available)

        self._retained.append(message)
        self._token_usage += message.token_cost

        removed: list[Message] = []
        idx = 0
        # Bounded by the pre-check: unpinned older messages always cover the excess.
        while self._token_usage > self._max and idx < len(self._retained) - 1:
            candidate = self._retained[idx]
            if candidate.id in self._pinned:
                idx += 1
                continue
            del self._retained[idx]
            self._evicted.append(candidate)
            self._token_usage -= candidate.token_cost
            removed.append(candidate)
        return removed
