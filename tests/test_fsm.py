"""Tests for the completion stage machine."""

import pytest

from chatstream.fsm import CompletionStage, CompletionState


def test_initial_state_is_pending():
    state = CompletionState()
    assert state.stage == CompletionStage.PENDING
    assert not state.is_terminal


def test_valid_transition_chain():
    state = CompletionState()
    for target in [
        CompletionStage.RESOLVING,
        CompletionStage.REQUESTING,
        CompletionStage.STREAMING,
        CompletionStage.FINALIZING,
        CompletionStage.PERSISTING,
        CompletionStage.PERSISTED,
    ]:
        state = state.transition(target)
    assert state.stage == CompletionStage.PERSISTED
    assert state.is_terminal


def test_invalid_transition_raises():
    state = CompletionState()
    with pytest.raises(ValueError, match="Invalid transition"):
        state.transition(CompletionStage.STREAMING)


@pytest.mark.parametrize(
    "stage",
    [
        CompletionStage.RESOLVING,
        CompletionStage.REQUESTING,
        CompletionStage.STREAMING,
        CompletionStage.FINALIZING,
        CompletionStage.PERSISTING,
    ],
)
def test_any_active_stage_can_fail(stage: CompletionStage):
    failed = CompletionState(stage=stage).transition(CompletionStage.FAILED)
    assert failed.stage == CompletionStage.FAILED
    assert failed.is_terminal


def test_terminal_states_do_not_transition():
    with pytest.raises(ValueError):
        CompletionState(stage=CompletionStage.PERSISTED).transition(CompletionStage.FAILED)
    with pytest.raises(ValueError):
        CompletionState(stage=CompletionStage.FAILED).transition(CompletionStage.RESOLVING)
