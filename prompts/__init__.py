"""
Prompt templates for agents.
"""
from .evaluator_prompt import build_matching_prompt, get_matcher_system_prompt
from .interviewer_prompt import build_follow_up_prompt, build_hint_text

__all__ = [
    "build_matching_prompt",
    "get_matcher_system_prompt",
    "build_follow_up_prompt",
    "build_hint_text",
]
