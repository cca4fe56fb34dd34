"""
Agent modules for the Adaptive Practice Interview Engine.
"""
from .evaluator import EvaluationEngine
from .matcher import KeywordMatcher, LLMPhraseMatcher, MatchVerdict, PhraseMatcher
from .policy import adjust_difficulty, decide
from .selector import QuestionSelector, SelectionCriteria

__all__ = [
    "EvaluationEngine",
    "KeywordMatcher",
    "LLMPhraseMatcher",
    "MatchVerdict",
    "PhraseMatcher",
    "adjust_difficulty",
    "decide",
    "QuestionSelector",
    "SelectionCriteria",
]
