"""
Interviewer - candidate-facing text for the current question.
Turns policy focus points into a follow-up and serves hints.
"""
from typing import List, Optional

from bank.bank_schema import Question
from prompts.interviewer_prompt import build_follow_up_prompt, build_hint_text


def follow_up_for(question: Question, focus_points: List[str], depth: int) -> str:
    """Follow-up prompt targeting the given gaps in the answer to `question`."""
    return build_follow_up_prompt(question.text, focus_points, depth)


def hint_for(question: Question, attempt_number: int) -> Optional[str]:
    """Nth hint for a question (1-based, capped at the last hint), or None."""
    hint = question.get_hint(attempt_number)
    if hint is None:
        return None
    return build_hint_text(hint, max(attempt_number, 1), len(question.hints))
