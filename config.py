"""
Engine configuration.

Defaults live on the models; `load_settings()` overlays values from the
environment (and the project `.env`).
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from errors import ConfigurationError

load_dotenv(Path(__file__).parent / ".env")

BANKS_DIR = Path(__file__).parent / "banks"


class ScoringWeights(BaseModel):
    """Weights of the deterministic scoring formula (0-10 scale)."""
    must_have_weight: float = 7.0
    bonus_per_point: float = 0.5
    bonus_cap: float = 3.0
    penalty_per_flag: float = 1.0
    follow_up_score_threshold: float = 7.0
    min_score: float = 0.0
    max_score: float = 10.0


class PolicyLimits(BaseModel):
    """Thresholds read by the policy engine."""
    max_follow_up_depth: int = Field(default=2, ge=0)
    max_questions: int = Field(default=10, ge=1)
    low_score_threshold: float = 4.0
    low_score_streak_limit: int = Field(default=3, ge=1)
    high_score_threshold: float = 7.5
    max_focus_points: int = Field(default=2, ge=1)


class MatcherSettings(BaseModel):
    """Semantic matcher wiring."""
    use_llm: bool = True
    model: str = "claude-sonnet-4-20250514"
    temperature: float = 0.0
    max_tokens: int = 1024
    timeout_seconds: float = Field(default=20.0, gt=0)
    # Retries run inside the evaluator's per-call timeout
    max_retries: int = Field(default=0, ge=0)


class SessionPolicy(BaseModel):
    """Counter semantics the state machine applies between cycles."""
    # Low scores on follow-ups count toward the streak
    streak_counts_follow_ups: bool = False
    # A difficulty decrease clears the low-score streak
    reset_streak_on_difficulty_decrease: bool = False


class EngineSettings(BaseModel):
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    policy: PolicyLimits = Field(default_factory=PolicyLimits)
    matcher: MatcherSettings = Field(default_factory=MatcherSettings)
    session: SessionPolicy = Field(default_factory=SessionPolicy)
    bank_dir: Path = BANKS_DIR


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def load_settings() -> EngineSettings:
    """
    Build settings from defaults overlaid with INTERVIEW_* environment variables.

    Raises:
        ConfigurationError: an environment value is malformed or out of range
    """
    try:
        return _load_settings()
    except ValueError as e:
        raise ConfigurationError(f"Invalid engine settings: {e}") from e


def _load_settings() -> EngineSettings:
    defaults = EngineSettings()

    policy_values = defaults.policy.model_dump()
    for key, env_name, cast in [
        ("max_questions", "INTERVIEW_MAX_QUESTIONS", int),
        ("max_follow_up_depth", "INTERVIEW_MAX_FOLLOW_UP_DEPTH", int),
        ("low_score_threshold", "INTERVIEW_LOW_SCORE_THRESHOLD", float),
        ("high_score_threshold", "INTERVIEW_HIGH_SCORE_THRESHOLD", float),
        ("low_score_streak_limit", "INTERVIEW_LOW_SCORE_STREAK_LIMIT", int),
    ]:
        raw = _env(env_name)
        if raw is not None:
            policy_values[key] = cast(raw)

    matcher = MatcherSettings(
        use_llm=_env_bool("INTERVIEW_USE_LLM_MATCHER", defaults.matcher.use_llm),
        model=_env("INTERVIEW_MATCHER_MODEL", defaults.matcher.model),
        timeout_seconds=float(
            _env("INTERVIEW_MATCHER_TIMEOUT_SECONDS", str(defaults.matcher.timeout_seconds))
        ),
        max_retries=int(_env("INTERVIEW_MATCHER_MAX_RETRIES", str(defaults.matcher.max_retries))),
    )

    session = SessionPolicy(
        streak_counts_follow_ups=_env_bool(
            "INTERVIEW_STREAK_COUNTS_FOLLOW_UPS", defaults.session.streak_counts_follow_ups
        ),
        reset_streak_on_difficulty_decrease=_env_bool(
            "INTERVIEW_RESET_STREAK_ON_DECREASE",
            defaults.session.reset_streak_on_difficulty_decrease,
        ),
    )

    bank_dir = Path(_env("INTERVIEW_BANK_DIR", str(BANKS_DIR)))

    # Re-validate so bad env values fail here rather than mid-session
    return EngineSettings(
        scoring=defaults.scoring,
        policy=PolicyLimits(**policy_values),
        matcher=matcher,
        session=session,
        bank_dir=bank_dir,
    )
