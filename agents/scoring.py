"""
Deterministic scoring formula.

    must_score  = covered / |must_have| * must_have_weight
    bonus_score = min(|covered_good| * bonus_per_point, bonus_cap)
    penalty     = |wrong_claims| * penalty_per_flag
    score       = round_half_up(clamp(must + bonus - penalty, 0, 10), 1)
"""
import math
from typing import List, Tuple

from config import ScoringWeights
from state import ScoreBreakdown

GRADE_BANDS = [
    (8.0, "Excellent"),
    (6.0, "Good"),
    (4.0, "Fair"),
]
LOWEST_GRADE = "Poor"

MAX_MISSING_IN_FEEDBACK = 3


def round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    # Epsilon absorbs float error such as 0.35 * 10 == 3.4999999999999996
    return math.floor(value * factor + 0.5 + 1e-9) / factor


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def compute_score(
    covered_count: int,
    must_total: int,
    covered_good_count: int,
    wrong_claim_count: int,
    weights: ScoringWeights,
) -> Tuple[float, ScoreBreakdown]:
    """Final score and its breakdown. Breakdown values are rounded to two decimals."""
    must_score = (covered_count / must_total) * weights.must_have_weight if must_total else 0.0
    bonus_score = min(covered_good_count * weights.bonus_per_point, weights.bonus_cap)
    penalty = wrong_claim_count * weights.penalty_per_flag
    raw_score = must_score + bonus_score - penalty
    score = round_half_up(clamp(raw_score, weights.min_score, weights.max_score), 1)
    return score, ScoreBreakdown(
        must_score=round(must_score, 2),
        bonus_score=round(bonus_score, 2),
        penalty=round(penalty, 2),
        raw_score=round(raw_score, 2),
    )


def grade_for(score: float) -> str:
    """Band a score; each band includes its lower boundary."""
    for lower, grade in GRADE_BANDS:
        if score >= lower:
            return grade
    return LOWEST_GRADE


def needs_follow_up(score: float, missing: List[str], weights: ScoringWeights) -> bool:
    return bool(missing) and score < weights.follow_up_score_threshold


def build_feedback(covered: List[str], missing: List[str], wrong_claims: List[str]) -> str:
    """
    Short, fixed-structure feedback:
    affirmation if anything was covered, up to three missing points,
    and a warning about wrong claims.
    """
    sentences = []
    if covered:
        sentences.append(f"Good job covering {_join(covered)}.")
    if missing:
        shown = missing[:MAX_MISSING_IN_FEEDBACK]
        sentences.append(f"Consider also explaining {_join(shown)}.")
    if wrong_claims:
        sentences.append(f"Be careful: {_join(wrong_claims)} is not correct.")
    if not sentences:
        sentences.append("The answer did not address the key points of the question.")
    return " ".join(sentences)


def _join(items: List[str]) -> str:
    if len(items) == 1:
        return items[0]
    return ", ".join(items[:-1]) + " and " + items[-1]
