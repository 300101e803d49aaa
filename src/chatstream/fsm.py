"""Finite State Machine for a single completion invocation."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class CompletionStage(StrEnum):
    PENDING = "pending"
    RESOLVING = "resolving"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    PERSISTING = "persisting"
    PERSISTED = "persisted"
    FAILED = "failed"


_TRANSITIONS: dict[CompletionStage, list[CompletionStage]] = {
    CompletionStage.PENDING: [CompletionStage.RESOLVING],
    CompletionStage.RESOLVING: [CompletionStage.REQUESTING, CompletionStage.FAILED],
    CompletionStage.REQUESTING: [CompletionStage.STREAMING, CompletionStage.FAILED],
    CompletionStage.STREAMING: [CompletionStage.FINALIZING, CompletionStage.FAILED],
    CompletionStage.FINALIZING: [CompletionStage.PERSISTING, CompletionStage.FAILED],
    CompletionStage.PERSISTING: [CompletionStage.PERSISTED, CompletionStage.FAILED],
    CompletionStage.PERSISTED: [],
    CompletionStage.FAILED: [],
}


class CompletionState(BaseModel):
    stage: CompletionStage = CompletionStage.PENDING

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.stage]

    def can_transition(self, target: CompletionStage) -> bool:
        return target in _TRANSITIONS.get(self.stage, [])

    def transition(self, target: CompletionStage) -> CompletionState:
        if not self.can_transition(target):
            raise ValueError(f"Invalid transition: {self.stage} -> {target}")
        return CompletionState(stage=target)
