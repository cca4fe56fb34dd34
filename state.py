"""
State definitions for the Adaptive Practice Interview Engine.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bank.bank_schema import Difficulty, SessionMode


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionPhase(str, Enum):
    SETUP = "SETUP"
    ACTIVE_QUESTION = "ACTIVE_QUESTION"
    EVALUATING = "EVALUATING"
    FEEDBACK = "FEEDBACK"
    ENDED = "ENDED"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class PolicyAction(str, Enum):
    FOLLOW_UP = "FOLLOW_UP"
    NEXT_QUESTION = "NEXT_QUESTION"
    DECREASE_DIFFICULTY = "DECREASE_DIFFICULTY"
    INCREASE_DIFFICULTY = "INCREASE_DIFFICULTY"
    END_SESSION = "END_SESSION"


# =============================================================================
# EVALUATION
# =============================================================================

class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    must_score: float
    bonus_score: float
    penalty: float
    raw_score: float  # before clamping


class EvaluationResult(BaseModel):
    """Outcome of scoring one answer against one rubric. Never mutated."""
    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0.0, le=10.0)
    grade: str
    covered: List[str] = Field(default_factory=list)
    covered_good: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    wrong_claims: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    breakdown: ScoreBreakdown
    coverage: float = Field(ge=0.0, le=1.0)  # covered / |must_have|
    feedback: str
    needs_follow_up: bool
    matcher: str  # which matcher produced the verdicts


# =============================================================================
# POLICY
# =============================================================================

class PolicyContext(BaseModel):
    """Summary of the session the policy engine decides from. Rebuilt every cycle."""
    model_config = ConfigDict(frozen=True)

    last_score: float
    follow_up_depth: int = 0
    consecutive_low_scores: int = 0
    questions_asked: int = 0
    missing_core_points: List[str] = Field(default_factory=list)
    wrong_claims: List[str] = Field(default_factory=list)
    difficulty: Difficulty = Difficulty.MEDIUM


class PolicyDecisionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: PolicyAction
    reason: str
    focus_points: List[str] = Field(default_factory=list)


# =============================================================================
# SESSION
# =============================================================================

class SessionState(BaseModel):
    # Session metadata
    session_id: str
    user_id: Optional[str] = None
    domain: str
    mode: SessionMode = SessionMode.PRACTICE
    difficulty: Difficulty
    initial_difficulty: Difficulty
    started_at: str = Field(default_factory=utc_now)
    ended_at: Optional[str] = None

    # Lifecycle
    phase: SessionPhase = SessionPhase.SETUP
    status: SessionStatus = SessionStatus.ACTIVE
    end_reason: Optional[str] = None

    # Counters
    question_count: int = 0  # answers scored so far
    follow_up_depth: int = 0
    consecutive_low_scores: int = 0

    # Current position
    current_topic: Optional[str] = None
    current_question_id: Optional[str] = None
    current_prompt: Optional[str] = None  # question text, or a follow-up
    focus_points: List[str] = Field(default_factory=list)

    # History
    asked_question_ids: List[str] = Field(default_factory=list)  # append-only
    weak_topics: List[str] = Field(default_factory=list)
    last_evaluation: Optional[EvaluationResult] = None

    # Owned by the session store
    version: int = 0

    @property
    def is_ended(self) -> bool:
        return self.phase == SessionPhase.ENDED


class EvaluationEvent(BaseModel):
    """One scored answer in a session's append-only event log."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    sequence: int
    question_id: str
    topic: str
    difficulty: Difficulty
    follow_up_depth: int
    answer_text: str
    auxiliary_text: Optional[str] = None
    evaluation: EvaluationResult
    decision: PolicyDecisionResult
    created_at: str = Field(default_factory=utc_now)


class TurnResult(BaseModel):
    """What the caller gets back after submitting an answer."""
    model_config = ConfigDict(frozen=True)

    evaluation: EvaluationResult
    decision: PolicyDecisionResult
    next_prompt: Optional[str] = None
    next_question_id: Optional[str] = None
    is_follow_up: bool = False
    session_ended: bool = False
    end_reason: Optional[str] = None

    def summary(self) -> Dict[str, object]:
        return {
            "score": self.evaluation.score,
            "grade": self.evaluation.grade,
            "action": self.decision.action.value,
            "reason": self.decision.reason,
        }
