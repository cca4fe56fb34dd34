"""
Policy Engine - decides what happens after an answer is scored.

A pure function of (PolicyContext, PolicyLimits): no I/O, no randomness.
The same inputs always produce the same decision.

Rules are checked in order; the first match wins:
1. Question budget exhausted              -> END_SESSION
2. Low-score streak at the limit          -> END_SESSION
3. Low score, follow-ups left, gaps found -> FOLLOW_UP on the gaps
4. Low score, follow-ups used up          -> DECREASE_DIFFICULTY
5. High score below the top difficulty    -> INCREASE_DIFFICULTY
6. Anything else                          -> NEXT_QUESTION
"""
from bank.bank_schema import DIFFICULTY_LEVELS, Difficulty
from config import PolicyLimits
from state import PolicyAction, PolicyContext, PolicyDecisionResult


def decide(context: PolicyContext, limits: PolicyLimits) -> PolicyDecisionResult:
    """Pick the next action for a session."""
    if context.questions_asked >= limits.max_questions:
        return PolicyDecisionResult(
            action=PolicyAction.END_SESSION,
            reason="question budget exhausted",
        )

    if context.consecutive_low_scores >= limits.low_score_streak_limit:
        return PolicyDecisionResult(
            action=PolicyAction.END_SESSION,
            reason="sustained underperformance",
        )

    is_low = context.last_score < limits.low_score_threshold

    if is_low and context.follow_up_depth < limits.max_follow_up_depth and context.missing_core_points:
        # Follow-ups target gaps only; wrong claims are left to the feedback
        return PolicyDecisionResult(
            action=PolicyAction.FOLLOW_UP,
            reason="low score with missing core points",
            focus_points=list(context.missing_core_points[:limits.max_focus_points]),
        )

    if is_low and context.follow_up_depth >= limits.max_follow_up_depth:
        return PolicyDecisionResult(
            action=PolicyAction.DECREASE_DIFFICULTY,
            reason="low score after maximum follow-ups",
        )

    if context.last_score >= limits.high_score_threshold and context.difficulty != Difficulty.HARD:
        return PolicyDecisionResult(
            action=PolicyAction.INCREASE_DIFFICULTY,
            reason="strong answer",
        )

    return PolicyDecisionResult(
        action=PolicyAction.NEXT_QUESTION,
        reason="continue at current difficulty",
    )


def adjust_difficulty(current: Difficulty, action: PolicyAction) -> Difficulty:
    """Move one level up or down for difficulty actions, clamped to Easy..Hard."""
    index = DIFFICULTY_LEVELS.index(Difficulty(current))
    if action == PolicyAction.INCREASE_DIFFICULTY:
        index = min(index + 1, len(DIFFICULTY_LEVELS) - 1)
    elif action == PolicyAction.DECREASE_DIFFICULTY:
        index = max(index - 1, 0)
    return DIFFICULTY_LEVELS[index]
