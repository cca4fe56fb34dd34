"""
Interview API routes.
Wraps InterviewRunner for the candidate-facing practice app.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel
from typing import Any, Dict, List, Optional

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from bank.bank_schema import Difficulty, SessionMode
from errors import (
    ConcurrentModificationError,
    ConfigurationError,
    EvaluationUnavailableError,
    InterviewEngineError,
    InvalidStateError,
    NoEligibleQuestionsError,
    NotFoundError,
    SessionBusyError,
)
from graph import InterviewRunner
from interview_factory import (
    EngineComponents,
    create_engine_components,
    drain_report_jobs,
    drain_roadmap_jobs,
    list_domains,
    resume_interview,
    start_practice_interview,
)
from jobs import enqueue_roadmap
from reports import SkillProfile, build_session_report
from state import EvaluationResult, PolicyDecisionResult
from whiteboard import describe_drawing

router = APIRouter(prefix="/api", tags=["interview"])

# In-memory session storage (use Redis/DB in production)
sessions: Dict[str, InterviewRunner] = {}

_engine: Optional[EngineComponents] = None


def get_engine() -> EngineComponents:
    """Shared engine, created on first use."""
    global _engine
    if _engine is None:
        _engine = create_engine_components()
    return _engine


# Most specific classes first
ERROR_STATUS = [
    (NotFoundError, 404),
    (NoEligibleQuestionsError, 404),
    (InvalidStateError, 409),
    (SessionBusyError, 409),
    (ConcurrentModificationError, 409),
    (ConfigurationError, 500),
    (EvaluationUnavailableError, 503),
]


def status_for_error(error: InterviewEngineError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def error_body(error: InterviewEngineError) -> Dict[str, Any]:
    return {
        "detail": str(error),
        "error": type(error).__name__,
        "retryable": error.retryable,
    }


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class StartSessionRequest(BaseModel):
    domain: str
    difficulty: Difficulty = Difficulty.MEDIUM
    mode: SessionMode = SessionMode.PRACTICE
    user_id: Optional[str] = None


class SessionView(BaseModel):
    session_id: str
    domain: str
    difficulty: str
    phase: str
    status: str
    question_count: int
    follow_up_depth: int
    current_question_id: Optional[str] = None
    current_prompt: Optional[str] = None
    end_reason: Optional[str] = None


class SubmitAnswerRequest(BaseModel):
    answer: str = ""
    drawing: Optional[Any] = None  # tldraw snapshot


class SubmitAnswerResponse(BaseModel):
    evaluation: EvaluationResult
    decision: PolicyDecisionResult
    next_prompt: Optional[str] = None
    is_follow_up: bool
    session_ended: bool
    end_reason: Optional[str] = None


class HintResponse(BaseModel):
    attempt: int
    hint: Optional[str] = None


class SkipResponse(BaseModel):
    next_prompt: Optional[str] = None
    session_ended: bool


class AbandonRequest(BaseModel):
    reason: str = "abandoned by candidate"


def _view(runner: InterviewRunner) -> SessionView:
    state = runner.get_state()
    return SessionView(
        session_id=state.session_id,
        domain=state.domain,
        difficulty=state.difficulty.value,
        phase=state.phase.value,
        status=state.status.value,
        question_count=state.question_count,
        follow_up_depth=state.follow_up_depth,
        current_question_id=None if state.is_ended else state.current_question_id,
        current_prompt=None if state.is_ended else state.current_prompt,
        end_reason=state.end_reason,
    )


def _runner(session_id: str, engine: EngineComponents) -> InterviewRunner:
    runner = sessions.get(session_id)
    if runner is None:
        # Raises NotFoundError for unknown ids
        runner = resume_interview(engine, session_id)
        if not runner.is_complete():
            sessions[session_id] = runner
    return runner


def _after_end(session_id: str, engine: EngineComponents, background_tasks: BackgroundTasks):
    """Stop caching an ended session's runner and build its report off the request."""
    sessions.pop(session_id, None)
    background_tasks.add_task(drain_report_jobs, engine)


# =============================================================================
# ROUTES
# =============================================================================

@router.get("/domains", response_model=List[str])
def get_domains(engine: EngineComponents = Depends(get_engine)):
    """List the domains that have questions."""
    return list_domains(engine)


@router.post("/sessions", response_model=SessionView, status_code=201)
def start_session(request: StartSessionRequest, engine: EngineComponents = Depends(get_engine)):
    """Start a new practice session."""
    runner = start_practice_interview(
        engine,
        domain=request.domain,
        difficulty=request.difficulty.value,
        mode=request.mode.value,
        user_id=request.user_id,
    )
    sessions[runner.session_id] = runner
    return _view(runner)


@router.get("/sessions/{session_id}", response_model=SessionView)
def get_session(session_id: str, engine: EngineComponents = Depends(get_engine)):
    """Current state of a session."""
    return _view(_runner(session_id, engine))


@router.post("/sessions/{session_id}/answers", response_model=SubmitAnswerResponse)
def submit_answer(
    session_id: str,
    request: SubmitAnswerRequest,
    background_tasks: BackgroundTasks,
    engine: EngineComponents = Depends(get_engine),
):
    """Submit an answer (and optional whiteboard drawing) to the current prompt."""
    runner = _runner(session_id, engine)
    auxiliary_text = describe_drawing(request.drawing) or None
    turn = runner.submit_answer(request.answer, auxiliary_text=auxiliary_text)
    if turn.session_ended:
        _after_end(session_id, engine, background_tasks)
    return SubmitAnswerResponse(
        evaluation=turn.evaluation,
        decision=turn.decision,
        next_prompt=turn.next_prompt,
        is_follow_up=turn.is_follow_up,
        session_ended=turn.session_ended,
        end_reason=turn.end_reason,
    )


@router.get("/sessions/{session_id}/hints/{attempt}", response_model=HintResponse)
def get_hint(session_id: str, attempt: int, engine: EngineComponents = Depends(get_engine)):
    """Nth hint for the current question."""
    if attempt < 1:
        raise HTTPException(status_code=422, detail="Hint attempts start at 1")
    hint = _runner(session_id, engine).request_hint(attempt)
    return HintResponse(attempt=attempt, hint=hint)


@router.post("/sessions/{session_id}/skip", response_model=SkipResponse)
def skip_question(
    session_id: str,
    background_tasks: BackgroundTasks,
    engine: EngineComponents = Depends(get_engine),
):
    """Skip the current question."""
    next_prompt = _runner(session_id, engine).get_next_question()
    if next_prompt is None:
        _after_end(session_id, engine, background_tasks)
    return SkipResponse(next_prompt=next_prompt, session_ended=next_prompt is None)


@router.post("/sessions/{session_id}/end", response_model=SessionView)
def end_session(
    session_id: str,
    background_tasks: BackgroundTasks,
    engine: EngineComponents = Depends(get_engine),
):
    """End the session; a report is generated."""
    runner = _runner(session_id, engine)
    runner.end()
    _after_end(session_id, engine, background_tasks)
    return _view(runner)


@router.post("/sessions/{session_id}/abandon", response_model=SessionView)
def abandon_session(
    session_id: str,
    request: Optional[AbandonRequest] = None,
    engine: EngineComponents = Depends(get_engine),
):
    """Abandon the session. No report is generated."""
    runner = _runner(session_id, engine)
    runner.abandon((request or AbandonRequest()).reason)
    sessions.pop(session_id, None)
    return _view(runner)


@router.get("/sessions/{session_id}/report")
def get_report(session_id: str, engine: EngineComponents = Depends(get_engine)):
    """Summary of a finished session."""
    report = engine.reports.get(session_id)
    if report is None:
        runner = _runner(session_id, engine)
        state = runner.get_state()
        if not state.is_ended:
            raise HTTPException(status_code=409, detail="Session is still in progress")
        report = build_session_report(state, runner.get_events())
    return report.model_dump()


@router.post("/users/{user_id}/roadmap", status_code=202)
def request_roadmap(
    user_id: str,
    background_tasks: BackgroundTasks,
    engine: EngineComponents = Depends(get_engine),
):
    """Queue a study-roadmap generation job."""
    enqueue_roadmap(engine.dispatcher, user_id)
    background_tasks.add_task(drain_roadmap_jobs, engine)
    return {"status": "queued", "user_id": user_id}


@router.get("/users/{user_id}/profile", response_model=SkillProfile)
def get_skill_profile(user_id: str, engine: EngineComponents = Depends(get_engine)):
    """Latest skill profile built for a user by a roadmap job."""
    profile = engine.profiles.get(user_id)
    if profile is None:
        raise NotFoundError(f"No skill profile for user {user_id}; request a roadmap first")
    return profile
