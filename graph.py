"""
Session state machine for the Adaptive Practice Interview Engine.

Cycle per answer:
1. Evaluator scores the answer against the current question's rubric
2. Session counters are updated and the event is logged
3. Policy engine decides the next action
4. Selector picks the next question (unless following up or ending)

Phases:
    SETUP -> ACTIVE_QUESTION -> EVALUATING -> FEEDBACK -> ACTIVE_QUESTION | ENDED

EVALUATING and FEEDBACK only exist while a cycle is running; the store
only ever holds ACTIVE_QUESTION or ENDED. A cycle that fails before saving
leaves the stored session untouched, so the candidate can resubmit.
"""
import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from agents.evaluator import EvaluationEngine
from agents.interviewer import follow_up_for, hint_for
from agents.policy import adjust_difficulty, decide
from agents.selector import QuestionSelector, SelectionCriteria
from bank.bank_schema import Difficulty, Question, SessionMode
from bank.repository import QuestionRepository
from config import EngineSettings
from errors import InvalidStateError, NoEligibleQuestionsError, SessionBusyError
from jobs import JobDispatcher, enqueue_report
from session_store import SessionStore
from state import (
    EvaluationEvent,
    PolicyAction,
    PolicyContext,
    PolicyDecisionResult,
    SessionPhase,
    SessionState,
    SessionStatus,
    TurnResult,
    utc_now,
)

logger = logging.getLogger(__name__)

NO_ELIGIBLE_QUESTIONS = "no eligible questions"

# One lock per session id, shared by every runner for that session
_session_locks: Dict[str, threading.Lock] = {}
_session_locks_guard = threading.Lock()


def _lock_for(session_id: str) -> threading.Lock:
    with _session_locks_guard:
        lock = _session_locks.get(session_id)
        if lock is None:
            lock = threading.Lock()
            _session_locks[session_id] = lock
        return lock


def _forget_lock(session_id: str):
    """Drop an ended session's lock; any later mutation fails on the ended state."""
    with _session_locks_guard:
        _session_locks.pop(session_id, None)


class SessionCriteria(BaseModel):
    """What a candidate asks for when starting a session."""
    model_config = ConfigDict(frozen=True)

    domain: str
    difficulty: Difficulty = Difficulty.MEDIUM
    mode: SessionMode = SessionMode.PRACTICE
    user_id: Optional[str] = None


class InterviewRunner:
    """
    High-level interface for running one practice session.

    All mutating operations hold the session's lock for the whole cycle; a
    second call while a cycle is running fails with SessionBusyError.
    """

    def __init__(
        self,
        session_id: str,
        store: SessionStore,
        repository: QuestionRepository,
        evaluator: EvaluationEngine,
        dispatcher: Optional[JobDispatcher] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.session_id = session_id
        self.store = store
        self.repository = repository
        self.evaluator = evaluator
        self.selector = QuestionSelector(repository)
        self.dispatcher = dispatcher
        self.settings = settings or EngineSettings()
        self._transient_phase: Optional[SessionPhase] = None

    @classmethod
    def start(
        cls,
        criteria: SessionCriteria,
        store: SessionStore,
        repository: QuestionRepository,
        evaluator: EvaluationEngine,
        dispatcher: Optional[JobDispatcher] = None,
        settings: Optional[EngineSettings] = None,
        session_id: Optional[str] = None,
    ) -> "InterviewRunner":
        """
        Create a session and present its first question.

        Raises:
            NoEligibleQuestionsError: the bank has nothing for domain/difficulty
        """
        session_id = session_id or str(uuid.uuid4())
        selector = QuestionSelector(repository)
        question = selector.select(SelectionCriteria(
            domain=criteria.domain,
            difficulty=criteria.difficulty,
            session_id=session_id,
            question_count=0,
        ))

        state = SessionState(
            session_id=session_id,
            user_id=criteria.user_id,
            domain=criteria.domain,
            mode=criteria.mode,
            difficulty=criteria.difficulty,
            initial_difficulty=criteria.difficulty,
        )
        _present(state, question)
        store.create(state)

        logger.info(
            "Started session %s (%s, %s): first question %s",
            session_id, criteria.domain, criteria.difficulty.value, question.id,
        )
        return cls(session_id, store, repository, evaluator, dispatcher, settings)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def submit_answer(self, answer_text: str, auxiliary_text: Optional[str] = None) -> TurnResult:
        """
        Score an answer to the current prompt and move the session on.

        Raises:
            InvalidStateError: the session has ended
            SessionBusyError: another cycle is running for this session
            EvaluationUnavailableError / EvaluationTimeoutError: nothing saved, resubmit
            ConfigurationError: the current question has no rubric
            ConcurrentModificationError: the session changed since this cycle read it
        """
        with self._exclusive():
            state, version = self.store.load(self.session_id)
            self._require_active(state, "submit an answer")
            question = self.repository.find_question(state.current_question_id)

            self._transient_phase = SessionPhase.EVALUATING
            try:
                evaluation = self.evaluator.evaluate(answer_text, question.rubric, auxiliary_text)
            finally:
                self._transient_phase = None

            state.phase = SessionPhase.FEEDBACK
            answered_depth = state.follow_up_depth
            state.question_count += 1
            state.last_evaluation = evaluation
            self._update_streak(state, evaluation.score, is_follow_up=answered_depth > 0)
            if evaluation.missing and state.current_topic and state.current_topic not in state.weak_topics:
                state.weak_topics.append(state.current_topic)

            context = PolicyContext(
                last_score=evaluation.score,
                follow_up_depth=state.follow_up_depth,
                consecutive_low_scores=state.consecutive_low_scores,
                questions_asked=state.question_count,
                missing_core_points=evaluation.missing,
                wrong_claims=evaluation.wrong_claims,
                difficulty=state.difficulty,
            )
            decision = decide(context, self.settings.policy)
            logger.info(
                "Session %s answer %d on %s scored %.1f (%s) -> %s: %s",
                self.session_id, state.question_count, question.id, evaluation.score,
                evaluation.grade, decision.action.value, decision.reason,
            )

            event = EvaluationEvent(
                session_id=self.session_id,
                sequence=state.question_count,
                question_id=question.id,
                topic=question.topic,
                difficulty=state.difficulty,
                follow_up_depth=answered_depth,
                answer_text=answer_text or "",
                auxiliary_text=auxiliary_text,
                evaluation=evaluation,
                decision=decision,
            )

            is_follow_up = self._apply_decision(state, question, decision)

            saved = self.store.save(state, expected_version=version)
            self.store.append_event(event)
            if saved.status == SessionStatus.COMPLETED:
                self._dispatch_report()
            if saved.is_ended:
                _forget_lock(self.session_id)

            return TurnResult(
                evaluation=evaluation,
                decision=decision,
                next_prompt=None if saved.is_ended else saved.current_prompt,
                next_question_id=None if saved.is_ended else saved.current_question_id,
                is_follow_up=is_follow_up,
                session_ended=saved.is_ended,
                end_reason=saved.end_reason,
            )

    def request_hint(self, attempt_number: int) -> Optional[str]:
        """Nth hint for the current question (1-based, capped). Does not change the session."""
        state, _ = self.store.load(self.session_id)
        self._require_active(state, "request a hint")
        question = self.repository.find_question(state.current_question_id)
        return hint_for(question, attempt_number)

    def get_next_question(self) -> Optional[str]:
        """
        Skip the current question without answering it.

        Returns the new prompt, or None if nothing is left and the session ended.
        """
        with self._exclusive():
            state, version = self.store.load(self.session_id)
            self._require_active(state, "skip a question")
            skipped = state.current_question_id

            state.follow_up_depth = 0
            state.focus_points = []
            try:
                question = self.selector.select(self._selection_criteria(state))
            except NoEligibleQuestionsError:
                logger.info("Session %s has no question left after skipping %s", self.session_id, skipped)
                _finish(state, SessionStatus.COMPLETED, NO_ELIGIBLE_QUESTIONS)
                self.store.save(state, expected_version=version)
                self._dispatch_report()
                _forget_lock(self.session_id)
                return None

            _present(state, question)
            saved = self.store.save(state, expected_version=version)
            logger.info("Session %s skipped %s, now on %s", self.session_id, skipped, question.id)
            return saved.current_prompt

    def end(self, reason: str = "ended by candidate") -> SessionState:
        """End the session naturally; a report is generated."""
        with self._exclusive():
            state, version = self.store.load(self.session_id)
            self._require_active(state, "end the session")
            _finish(state, SessionStatus.COMPLETED, reason)
            saved = self.store.save(state, expected_version=version)
            self._dispatch_report()
            _forget_lock(self.session_id)
            logger.info("Session %s ended: %s", self.session_id, reason)
            return saved

    def abandon(self, reason: str = "abandoned") -> SessionState:
        """End the session as abandoned. No evaluation, no report."""
        with self._exclusive():
            state, version = self.store.load(self.session_id)
            self._require_active(state, "abandon the session")
            _finish(state, SessionStatus.ABANDONED, reason)
            saved = self.store.save(state, expected_version=version)
            _forget_lock(self.session_id)
            logger.info("Session %s abandoned: %s", self.session_id, reason)
            return saved

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_state(self) -> SessionState:
        """Get the current session state."""
        state, _ = self.store.load(self.session_id)
        if self._transient_phase is not None:
            state.phase = self._transient_phase
        return state

    def get_events(self) -> List[EvaluationEvent]:
        return self.store.get_events(self.session_id)

    def is_complete(self) -> bool:
        return self.get_state().is_ended

    def get_current_prompt(self) -> Optional[str]:
        return self.get_state().current_prompt

    # =========================================================================
    # INTERNALS
    # =========================================================================

    @contextmanager
    def _exclusive(self):
        lock = _lock_for(self.session_id)
        if not lock.acquire(blocking=False):
            raise SessionBusyError(f"Session {self.session_id} is already processing a request")
        try:
            yield
        finally:
            lock.release()

    def _require_active(self, state: SessionState, action: str):
        if state.is_ended:
            _forget_lock(state.session_id)
            raise InvalidStateError(f"Cannot {action}: session {state.session_id} has ended")
        if state.phase != SessionPhase.ACTIVE_QUESTION:
            raise InvalidStateError(
                f"Cannot {action}: session {state.session_id} is in phase {state.phase.value}"
            )

    def _update_streak(self, state: SessionState, score: float, is_follow_up: bool):
        if score >= self.settings.policy.low_score_threshold:
            state.consecutive_low_scores = 0
        elif not is_follow_up or self.settings.session.streak_counts_follow_ups:
            state.consecutive_low_scores += 1

    def _apply_decision(self, state: SessionState, question: Question, decision: PolicyDecisionResult) -> bool:
        """Apply a policy decision to the state. Returns True when the next prompt is a follow-up."""
        if decision.action == PolicyAction.END_SESSION:
            _finish(state, SessionStatus.COMPLETED, decision.reason)
            return False

        if decision.action == PolicyAction.FOLLOW_UP:
            state.follow_up_depth += 1
            state.focus_points = list(decision.focus_points)
            state.current_prompt = follow_up_for(question, state.focus_points, state.follow_up_depth)
            state.phase = SessionPhase.ACTIVE_QUESTION
            return True

        new_difficulty = adjust_difficulty(state.difficulty, decision.action)
        if new_difficulty != state.difficulty:
            logger.info(
                "Session %s difficulty %s -> %s",
                self.session_id, state.difficulty.value, new_difficulty.value,
            )
        if (
            decision.action == PolicyAction.DECREASE_DIFFICULTY
            and self.settings.session.reset_streak_on_difficulty_decrease
        ):
            state.consecutive_low_scores = 0

        state.difficulty = new_difficulty
        state.follow_up_depth = 0
        state.focus_points = []

        try:
            next_question = self.selector.select(self._selection_criteria(state))
        except NoEligibleQuestionsError:
            logger.info("Session %s has no eligible %s question left", self.session_id, new_difficulty.value)
            _finish(state, SessionStatus.COMPLETED, NO_ELIGIBLE_QUESTIONS)
            return False

        _present(state, next_question)
        return False

    def _selection_criteria(self, state: SessionState) -> SelectionCriteria:
        return SelectionCriteria(
            domain=state.domain,
            difficulty=state.difficulty,
            asked_question_ids=state.asked_question_ids,
            current_topic=state.current_topic,
            weak_topics=state.weak_topics,
            session_id=state.session_id,
            question_count=state.question_count,
        )

    def _dispatch_report(self):
        if self.dispatcher is not None:
            enqueue_report(self.dispatcher, self.session_id)


def _present(state: SessionState, question: Question):
    state.current_question_id = question.id
    state.current_topic = question.topic
    state.current_prompt = question.text
    state.asked_question_ids.append(question.id)
    state.phase = SessionPhase.ACTIVE_QUESTION


def _finish(state: SessionState, status: SessionStatus, reason: str):
    state.phase = SessionPhase.ENDED
    state.status = status
    state.end_reason = reason
    state.ended_at = utc_now()
