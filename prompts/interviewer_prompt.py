"""
Interviewer phrasing - the text the candidate sees for follow-ups and hints.
"""

from typing import List

FOLLOW_UP_OPENERS = [
    "Let's dig a little deeper.",
    "Good start. Let's go one level further.",
    "Let's stay on this question for a moment.",
]


def _join_points(points: List[str]) -> str:
    if len(points) == 1:
        return points[0]
    return ", ".join(points[:-1]) + " and " + points[-1]


def build_follow_up_prompt(question_text: str, focus_points: List[str], depth: int) -> str:
    """
    Follow-up that asks the candidate to expand on specific gaps.

    `depth` is the follow-up number on this question (1-based) and only
    varies the opener.
    """
    opener = FOLLOW_UP_OPENERS[(max(depth, 1) - 1) % len(FOLLOW_UP_OPENERS)]
    if not focus_points:
        return f"{opener} Can you expand on your answer to: {question_text}"
    return (
        f"{opener} In the context of \"{question_text}\", "
        f"can you explain {_join_points(focus_points)}?"
    )


def build_hint_text(hint: str, attempt_number: int, total_hints: int) -> str:
    return f"Hint {min(attempt_number, total_hints)}/{total_hints}: {hint}"
