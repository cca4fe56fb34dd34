"""
Session state machine tests: full answer cycles against the in-memory bank.

Run with: pytest tests/test_runner.py -v
"""
import sys
import threading
import uuid
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from agents.evaluator import EvaluationEngine
from bank.bank_schema import Difficulty
from config import EngineSettings, PolicyLimits, SessionPolicy
from errors import (
    ConcurrentModificationError,
    EvaluationUnavailableError,
    InvalidStateError,
    NoEligibleQuestionsError,
    SessionBusyError,
)
import graph
from graph import NO_ELIGIBLE_QUESTIONS, InterviewRunner, SessionCriteria
from jobs import REPORT_QUEUE, ReportJob
from session_store import InMemorySessionStore
from state import PolicyAction, SessionPhase, SessionStatus

from conftest import BlockingMatcher, FailingMatcher, LiteralMatcher, full_answer, partial_answer


@pytest.fixture
def start(store, repository, evaluator, dispatcher, settings):
    """Start a session; keyword overrides replace the shared fixtures."""

    def _start(difficulty=Difficulty.MEDIUM, domain="DSA", **overrides):
        return InterviewRunner.start(
            SessionCriteria(domain=domain, difficulty=difficulty, user_id="user-1"),
            store=overrides.get("store", store),
            repository=repository,
            evaluator=overrides.get("evaluator", evaluator),
            dispatcher=dispatcher,
            settings=overrides.get("settings", settings),
            session_id=overrides.get("session_id", str(uuid.uuid4())),
        )

    return _start


def current_question(runner):
    return runner.repository.find_question(runner.get_state().current_question_id)


def report_jobs(dispatcher):
    return dispatcher.jobs(REPORT_QUEUE)


# =============================================================================
# START
# =============================================================================

def test_start_presents_first_question(start, store):
    runner = start()
    state = runner.get_state()

    assert state.phase == SessionPhase.ACTIVE_QUESTION
    assert state.status == SessionStatus.ACTIVE
    assert state.difficulty == Difficulty.MEDIUM
    assert state.initial_difficulty == Difficulty.MEDIUM
    assert state.question_count == 0
    assert state.version == 1
    assert state.user_id == "user-1"
    assert state.asked_question_ids == [state.current_question_id]
    assert runner.get_current_prompt() == current_question(runner).text
    assert store.get_events(runner.session_id) == []


def test_start_without_questions_fails(start, store):
    with pytest.raises(NoEligibleQuestionsError):
        start(domain="Rust")
    assert store.list_session_ids() == []


def test_first_question_is_reproducible(start):
    first = start(session_id="fixed-a").get_state().current_question_id
    again = start(session_id="fixed-a", store=InMemorySessionStore()).get_state().current_question_id
    assert first == again


# =============================================================================
# ANSWER CYCLE
# =============================================================================

def test_low_score_asks_follow_up_on_same_question(start):
    runner = start()
    question = current_question(runner)

    turn = runner.submit_answer("")

    assert turn.evaluation.score == 0.0
    assert turn.decision.action == PolicyAction.FOLLOW_UP
    assert turn.is_follow_up is True
    assert turn.next_question_id == question.id
    assert question.rubric.must_have[0] in turn.next_prompt

    state = runner.get_state()
    assert state.phase == SessionPhase.ACTIVE_QUESTION
    assert state.follow_up_depth == 1
    assert state.focus_points == question.rubric.must_have[:2]
    assert state.question_count == 1
    assert state.consecutive_low_scores == 1
    assert state.version == 2


def test_follow_ups_run_out_then_difficulty_drops(start):
    runner = start()
    question = current_question(runner)

    runner.submit_answer("")
    runner.submit_answer("")
    turn = runner.submit_answer("")

    assert turn.decision.action == PolicyAction.DECREASE_DIFFICULTY
    assert turn.is_follow_up is False

    state = runner.get_state()
    assert state.difficulty == Difficulty.EASY
    assert state.follow_up_depth == 0
    assert state.focus_points == []
    assert state.question_count == 3
    # Follow-up answers do not extend the streak
    assert state.consecutive_low_scores == 1
    assert state.weak_topics == [question.topic]
    assert current_question(runner).difficulty == Difficulty.EASY
    assert state.asked_question_ids[0] == question.id
    assert len(state.asked_question_ids) == 2


def test_strong_answer_raises_difficulty(start):
    runner = start()
    question = current_question(runner)

    turn = runner.submit_answer(full_answer(question, bonus=1))

    assert turn.evaluation.score == 7.5
    assert turn.decision.action == PolicyAction.INCREASE_DIFFICULTY
    state = runner.get_state()
    assert state.difficulty == Difficulty.HARD
    assert state.consecutive_low_scores == 0
    assert state.weak_topics == []
    assert current_question(runner).difficulty == Difficulty.HARD


def test_middle_score_moves_to_next_question(start):
    runner = start()
    question = current_question(runner)

    turn = runner.submit_answer(full_answer(question))

    assert turn.evaluation.score == 7.0
    assert turn.decision.action == PolicyAction.NEXT_QUESTION
    assert turn.next_question_id != question.id
    assert runner.get_state().difficulty == Difficulty.MEDIUM


def test_question_budget_ends_session_with_report(start, dispatcher):
    runner = start(settings=EngineSettings(policy=PolicyLimits(max_questions=2)))

    runner.submit_answer(full_answer(current_question(runner)))
    turn = runner.submit_answer(full_answer(current_question(runner)))

    assert turn.session_ended is True
    assert turn.end_reason == "question budget exhausted"
    assert turn.next_prompt is None
    state = runner.get_state()
    assert state.phase == SessionPhase.ENDED
    assert state.status == SessionStatus.COMPLETED
    assert state.ended_at is not None
    assert runner.is_complete()
    assert report_jobs(dispatcher) == [ReportJob(session_id=runner.session_id)]


def test_streak_of_low_scores_ends_session(start, dispatcher):
    runner = start(settings=EngineSettings(policy=PolicyLimits(max_follow_up_depth=0)))

    first = runner.submit_answer("")
    second = runner.submit_answer("")
    third = runner.submit_answer("")

    assert first.decision.action == PolicyAction.DECREASE_DIFFICULTY
    # Already at Easy: stays there and moves on
    assert second.decision.action == PolicyAction.DECREASE_DIFFICULTY
    assert runner.get_state().difficulty == Difficulty.EASY
    assert third.decision.action == PolicyAction.END_SESSION
    assert third.end_reason == "sustained underperformance"
    assert len(report_jobs(dispatcher)) == 1


def test_follow_ups_can_count_toward_streak(start):
    settings = EngineSettings(session=SessionPolicy(streak_counts_follow_ups=True))
    runner = start(settings=settings)

    runner.submit_answer("")
    runner.submit_answer("")
    turn = runner.submit_answer("")

    assert turn.decision.action == PolicyAction.END_SESSION
    assert turn.end_reason == "sustained underperformance"


def test_difficulty_decrease_can_reset_streak(start):
    settings = EngineSettings(
        policy=PolicyLimits(max_follow_up_depth=0),
        session=SessionPolicy(reset_streak_on_difficulty_decrease=True),
    )
    runner = start(settings=settings)

    turn = runner.submit_answer("")

    assert turn.decision.action == PolicyAction.DECREASE_DIFFICULTY
    assert runner.get_state().consecutive_low_scores == 0


def test_good_answer_resets_streak(start):
    runner = start(settings=EngineSettings(policy=PolicyLimits(max_follow_up_depth=0)))

    runner.submit_answer("")
    assert runner.get_state().consecutive_low_scores == 1

    runner.submit_answer(full_answer(current_question(runner)))
    assert runner.get_state().consecutive_low_scores == 0


def test_partial_answer_marks_topic_weak_once(start):
    runner = start(difficulty=Difficulty.EASY)
    question = current_question(runner)

    runner.submit_answer(partial_answer(question, 1))
    runner.submit_answer(partial_answer(question, 1))

    assert runner.get_state().weak_topics == [question.topic]


def test_auxiliary_text_reaches_evaluation(start):
    runner = start()
    question = current_question(runner)
    rubric = question.rubric

    turn = runner.submit_answer(
        ". ".join(rubric.must_have[:-1]),
        auxiliary_text=f"[Whiteboard Diagram]\nContains a box labeled: \"{rubric.must_have[-1]}\".",
    )

    assert turn.evaluation.missing == []
    event = runner.get_events()[0]
    assert event.auxiliary_text.startswith("[Whiteboard Diagram]")


def test_events_are_logged_in_order(start, store):
    runner = start()
    question = current_question(runner)

    runner.submit_answer("")
    runner.submit_answer(full_answer(question))

    events = runner.get_events()
    assert [e.sequence for e in events] == [1, 2]
    assert [e.question_id for e in events] == [question.id, question.id]
    assert [e.follow_up_depth for e in events] == [0, 1]
    assert events[0].decision.action == PolicyAction.FOLLOW_UP
    assert events[1].evaluation.score == 7.0
    assert events[0].difficulty == Difficulty.MEDIUM


# =============================================================================
# END AND ABANDON
# =============================================================================

def test_abandon_then_submit_fails(start, dispatcher):
    runner = start()

    state = runner.abandon()

    assert state.phase == SessionPhase.ENDED
    assert state.status == SessionStatus.ABANDONED
    with pytest.raises(InvalidStateError):
        runner.submit_answer("anything")
    with pytest.raises(InvalidStateError):
        runner.request_hint(1)
    with pytest.raises(InvalidStateError):
        runner.get_next_question()
    assert report_jobs(dispatcher) == []


def test_end_generates_report(start, dispatcher):
    runner = start()

    state = runner.end()

    assert state.status == SessionStatus.COMPLETED
    assert state.end_reason == "ended by candidate"
    assert len(report_jobs(dispatcher)) == 1
    with pytest.raises(InvalidStateError):
        runner.end()


# =============================================================================
# HINTS AND SKIP
# =============================================================================

def test_hints_are_capped_and_do_not_change_state(start):
    runner = start()
    question = current_question(runner)
    before = runner.get_state()

    assert runner.request_hint(1) == f"Hint 1/2: {question.hints[0]}"
    assert runner.request_hint(1) == runner.request_hint(1)
    assert runner.request_hint(7) == f"Hint 2/2: {question.hints[1]}"
    assert runner.get_state() == before


def test_skip_moves_to_unasked_question(start):
    runner = start(difficulty=Difficulty.EASY)
    first = runner.get_state().current_question_id

    prompt = runner.get_next_question()

    state = runner.get_state()
    assert state.current_question_id != first
    assert prompt == current_question(runner).text
    assert state.question_count == 0
    assert runner.get_events() == []


def test_skip_until_bank_is_exhausted(start, dispatcher):
    runner = start(difficulty=Difficulty.EASY)

    assert runner.get_next_question() is not None
    assert runner.get_next_question() is not None
    assert runner.get_next_question() is None

    state = runner.get_state()
    assert sorted(state.asked_question_ids) == ["array-1", "array-2", "stack-1"]
    assert state.status == SessionStatus.COMPLETED
    assert state.end_reason == NO_ELIGIBLE_QUESTIONS
    assert len(report_jobs(dispatcher)) == 1


def test_running_out_of_questions_after_answer_ends_session(start):
    runner = start(difficulty=Difficulty.HARD)
    runner.get_next_question()

    turn = runner.submit_answer(full_answer(current_question(runner)))

    assert turn.decision.action == PolicyAction.NEXT_QUESTION
    assert turn.session_ended is True
    assert turn.end_reason == NO_ELIGIBLE_QUESTIONS


# =============================================================================
# FAILURES AND CONCURRENCY
# =============================================================================

def test_failed_evaluation_leaves_session_untouched(start, store):
    failing = EvaluationEngine(FailingMatcher(), fallback=None, timeout_seconds=5)
    runner = start(evaluator=failing)
    before = runner.get_state()

    with pytest.raises(EvaluationUnavailableError) as exc_info:
        runner.submit_answer("hashing")

    assert exc_info.value.retryable is True
    assert runner.get_state() == before
    assert store.get_events(runner.session_id) == []
    failing.shutdown()


def test_concurrent_submit_is_rejected(start, repository, store, dispatcher, settings):
    blocking = BlockingMatcher()
    engine = EvaluationEngine(blocking, fallback=None, timeout_seconds=5)
    runner = start(evaluator=engine)
    other = InterviewRunner(runner.session_id, store, repository, engine, dispatcher, settings)

    results = []
    worker = threading.Thread(target=lambda: results.append(runner.submit_answer("hashing")))
    worker.start()
    assert blocking.entered.wait(timeout=5)

    try:
        assert runner.get_state().phase == SessionPhase.EVALUATING
        with pytest.raises(SessionBusyError):
            other.submit_answer("hashing")
        with pytest.raises(SessionBusyError):
            other.abandon()
    finally:
        blocking.release.set()
        worker.join(timeout=5)
        engine.shutdown()

    assert len(results) == 1
    assert runner.get_state().question_count == 1


class StoreBumpingMatcher(LiteralMatcher):
    """Saves the session behind the runner's back while the answer is being scored."""

    name = "bumping"

    def __init__(self, store):
        super().__init__()
        self.store = store
        self.session_id = None

    def match_all(self, rubric, answer_text):
        state, version = self.store.load(self.session_id)
        self.store.save(state, expected_version=version)
        return super().match_all(rubric, answer_text)


def test_stale_write_is_rejected(start, store):
    bumping = StoreBumpingMatcher(store)
    engine = EvaluationEngine(bumping, fallback=None, timeout_seconds=5)
    runner = start(evaluator=engine)
    bumping.session_id = runner.session_id

    with pytest.raises(ConcurrentModificationError):
        runner.submit_answer("hashing")

    assert store.get_events(runner.session_id) == []
    assert runner.get_state().question_count == 0
    engine.shutdown()


def test_ended_sessions_release_their_locks(start, dispatcher):
    before = len(graph._session_locks)

    for _ in range(20):
        runner = start()
        runner.submit_answer("hashing")
        runner.abandon()
    for _ in range(5):
        runner = start()
        runner.end()
    budget = EngineSettings(policy=PolicyLimits(max_questions=1))
    for _ in range(5):
        runner = start(settings=budget)
        assert runner.submit_answer(full_answer(current_question(runner))).session_ended is True
    for _ in range(5):
        runner = start(difficulty=Difficulty.HARD)
        runner.get_next_question()
        assert runner.get_next_question() is None

    assert len(graph._session_locks) == before


def test_touching_an_ended_session_does_not_register_a_lock(start, repository, store, dispatcher, settings, evaluator):
    runner = start()
    runner.abandon()
    before = len(graph._session_locks)

    resumed = InterviewRunner(runner.session_id, store, repository, evaluator, dispatcher, settings)
    with pytest.raises(InvalidStateError):
        resumed.submit_answer("hashing")
    resumed.get_state()

    assert len(graph._session_locks) == before
    assert runner.session_id not in graph._session_locks
