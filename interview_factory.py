"""
Interview Factory

Convenience functions for wiring the engine together and starting sessions.
This is the recommended entry point for creating new interviews.

Usage:
    from interview_factory import create_engine_components, start_practice_interview

    engine = create_engine_components()
    runner = start_practice_interview(engine, domain="DSA", difficulty="Medium")
    print(runner.get_current_prompt())

    turn = runner.submit_answer("A hash map hashes the key to a bucket index...")
    print(turn.evaluation.feedback)
"""

import logging
from typing import Dict, Iterable, List, Optional

from agents.evaluator import EvaluationEngine
from agents.matcher import PhraseMatcher, create_matchers
from bank.bank_loader import load_all_banks
from bank.bank_schema import Difficulty, Question, SessionMode
from bank.repository import InMemoryQuestionRepository
from config import EngineSettings, load_settings
from graph import InterviewRunner, SessionCriteria
from errors import InterviewEngineError
from jobs import REPORT_QUEUE, ROADMAP_QUEUE, InMemoryJobQueue, JobDispatcher, enqueue_rubric
from reports import SessionReport, SkillProfile, process_report_job, process_roadmap_job
from session_store import InMemorySessionStore, SessionStore

logger = logging.getLogger(__name__)


class EngineComponents:
    """Everything a runner needs, shared by all sessions in a process."""

    def __init__(
        self,
        settings: EngineSettings,
        repository: InMemoryQuestionRepository,
        store: SessionStore,
        evaluator: EvaluationEngine,
        dispatcher: JobDispatcher,
    ):
        self.settings = settings
        self.repository = repository
        self.store = store
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        # Results of the in-process workers, keyed by session id and user id
        self.reports: Dict[str, SessionReport] = {}
        self.profiles: Dict[str, SkillProfile] = {}


# =============================================================================
# WIRING
# =============================================================================

def create_engine_components(
    settings: Optional[EngineSettings] = None,
    questions: Optional[Iterable[Question]] = None,
    primary_matcher: Optional[PhraseMatcher] = None,
    fallback_matcher: Optional[PhraseMatcher] = None,
    store: Optional[SessionStore] = None,
    dispatcher: Optional[JobDispatcher] = None,
) -> EngineComponents:
    """
    Build the shared engine components.

    Args:
        settings: Engine settings (defaults to load_settings())
        questions: Question bank (defaults to every bank in settings.bank_dir)
        primary_matcher: Matcher to try first (defaults to the configured one)
        fallback_matcher: Matcher used when the primary fails
        store: Session store (defaults to in-memory)
        dispatcher: Job dispatcher (defaults to in-memory)

    Returns:
        EngineComponents ready to start sessions
    """
    settings = settings or load_settings()

    if questions is None:
        questions = load_all_banks(settings.bank_dir)
    repository = InMemoryQuestionRepository(questions)

    if primary_matcher is None:
        primary_matcher, default_fallback = create_matchers(settings.matcher)
        if fallback_matcher is None:
            fallback_matcher = default_fallback

    evaluator = EvaluationEngine(
        primary=primary_matcher,
        fallback=fallback_matcher,
        weights=settings.scoring,
        timeout_seconds=settings.matcher.timeout_seconds,
    )

    logger.info(
        "Engine ready: %d question(s), matcher '%s'%s",
        len(repository),
        primary_matcher.name,
        f" with fallback '{fallback_matcher.name}'" if fallback_matcher else "",
    )

    return EngineComponents(
        settings=settings,
        repository=repository,
        store=store or InMemorySessionStore(),
        evaluator=evaluator,
        dispatcher=dispatcher or InMemoryJobQueue(),
    )


def enqueue_missing_rubrics(engine: EngineComponents) -> List[str]:
    """Fire a rubric-generation job for every active question without a rubric."""
    queued = []
    for domain in engine.repository.get_domains():
        for difficulty in Difficulty:
            for question in engine.repository.find_questions_by_criteria(domain, difficulty):
                if question.rubric is None:
                    enqueue_rubric(engine.dispatcher, question.id, question.text, question.domain)
                    queued.append(question.id)
    return queued


# =============================================================================
# IN-PROCESS WORKERS
# =============================================================================

def drain_report_jobs(engine: EngineComponents) -> List[SessionReport]:
    """Build a report for every pending report job and keep it on the engine."""
    built = []
    for job in engine.dispatcher.drain(REPORT_QUEUE):
        try:
            report = process_report_job(job, engine.store)
        except InterviewEngineError:
            logger.exception("Report job for session %s failed", job.session_id)
            continue
        engine.reports[report.session_id] = report
        built.append(report)
    return built


def drain_roadmap_jobs(engine: EngineComponents) -> List[SkillProfile]:
    """Rebuild the skill profile of every user with a pending roadmap job."""
    built = []
    for job in engine.dispatcher.drain(ROADMAP_QUEUE):
        profile = process_roadmap_job(job, engine.store)
        engine.profiles[profile.user_id] = profile
        built.append(profile)
    return built


# =============================================================================
# SESSIONS
# =============================================================================

def start_practice_interview(
    engine: EngineComponents,
    domain: str,
    difficulty: str = "Medium",
    mode: str = "Practice",
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> InterviewRunner:
    """
    Start a new session and present its first question.

    Raises:
        NoEligibleQuestionsError: nothing in the bank for domain/difficulty
    """
    criteria = SessionCriteria(
        domain=domain,
        difficulty=Difficulty(difficulty),
        mode=SessionMode(mode),
        user_id=user_id,
    )
    return InterviewRunner.start(
        criteria,
        store=engine.store,
        repository=engine.repository,
        evaluator=engine.evaluator,
        dispatcher=engine.dispatcher,
        settings=engine.settings,
        session_id=session_id,
    )


def resume_interview(engine: EngineComponents, session_id: str) -> InterviewRunner:
    """
    Attach a runner to an existing session.

    Raises:
        NotFoundError: unknown session id
    """
    engine.store.load(session_id)
    return InterviewRunner(
        session_id,
        store=engine.store,
        repository=engine.repository,
        evaluator=engine.evaluator,
        dispatcher=engine.dispatcher,
        settings=engine.settings,
    )


def list_domains(engine: EngineComponents) -> List[str]:
    """List the domains that have active questions."""
    return engine.repository.get_domains()
