"""
Session store tests: versioned snapshots and the event log.

Run with: pytest tests/test_session_store.py -v
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from bank.bank_schema import Difficulty
from errors import ConcurrentModificationError, NotFoundError
from state import (
    EvaluationEvent,
    EvaluationResult,
    PolicyAction,
    PolicyDecisionResult,
    ScoreBreakdown,
    SessionState,
)


def make_state(session_id="s1"):
    return SessionState(
        session_id=session_id,
        domain="DSA",
        difficulty=Difficulty.MEDIUM,
        initial_difficulty=Difficulty.MEDIUM,
    )


def make_event(sequence, session_id="s1"):
    evaluation = EvaluationResult(
        score=5.0,
        grade="Fair",
        confidence=0.8,
        breakdown=ScoreBreakdown(must_score=5.0, bonus_score=0.0, penalty=0.0, raw_score=5.0),
        coverage=0.7,
        feedback="Good job covering hashing.",
        needs_follow_up=True,
        matcher="literal",
    )
    return EvaluationEvent(
        session_id=session_id,
        sequence=sequence,
        question_id="hash-1",
        topic="dsa.hashing",
        difficulty=Difficulty.MEDIUM,
        follow_up_depth=0,
        answer_text="hashing",
        evaluation=evaluation,
        decision=PolicyDecisionResult(action=PolicyAction.NEXT_QUESTION, reason="continue at current difficulty"),
    )


def test_create_and_load(store):
    created = store.create(make_state())
    state, version = store.load("s1")

    assert created.version == 1
    assert version == 1
    assert state.domain == "DSA"
    assert store.list_session_ids() == ["s1"]


def test_create_twice_fails(store):
    store.create(make_state())
    with pytest.raises(ConcurrentModificationError):
        store.create(make_state())


def test_load_returns_a_copy(store):
    store.create(make_state())
    state, _ = store.load("s1")
    state.weak_topics.append("dsa.hashing")

    reloaded, _ = store.load("s1")
    assert reloaded.weak_topics == []


def test_save_bumps_version(store):
    store.create(make_state())
    state, version = store.load("s1")
    state.question_count = 1

    saved = store.save(state, expected_version=version)

    assert saved.version == 2
    reloaded, version = store.load("s1")
    assert reloaded.question_count == 1
    assert version == 2


def test_stale_save_is_rejected(store):
    store.create(make_state())
    first, version = store.load("s1")
    second, _ = store.load("s1")

    store.save(first, expected_version=version)
    with pytest.raises(ConcurrentModificationError):
        store.save(second, expected_version=version)


def test_unknown_session(store):
    with pytest.raises(NotFoundError):
        store.load("missing")
    with pytest.raises(NotFoundError):
        store.save(make_state("missing"), expected_version=1)
    with pytest.raises(NotFoundError):
        store.get_events("missing")
    with pytest.raises(NotFoundError):
        store.append_event(make_event(1, session_id="missing"))


def test_events_are_append_only(store):
    store.create(make_state())
    store.append_event(make_event(1))
    store.append_event(make_event(2))

    with pytest.raises(ConcurrentModificationError):
        store.append_event(make_event(2))

    events = store.get_events("s1")
    assert [e.sequence for e in events] == [1, 2]

    events.clear()
    assert len(store.get_events("s1")) == 2
