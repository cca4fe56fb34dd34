"""
Question Bank Schema

Data structures for the questions the engine asks and the rubrics it scores
answers against. Questions and rubrics are read-only inputs: they are built
once (by an authoring flow or the bank loader) and never mutated during a
session.

Key concepts:
- Rubric: mustHave / goodToHave / redFlags phrases for one question
- Question: the prompt, its topic and difficulty, ordered hints, and its rubric
"""

import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================

class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


DIFFICULTY_LEVELS: List[Difficulty] = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD]


class SessionMode(str, Enum):
    PRACTICE = "Practice"
    TIMED = "Timed"
    COMPANY = "Company"


# =============================================================================
# RUBRIC LIMITS
# =============================================================================

MIN_MUST_HAVE = 3
MAX_MUST_HAVE = 8
MAX_GOOD_TO_HAVE = 6
MAX_RED_FLAGS = 8
MAX_PHRASE_LENGTH = 100

# Words that never carry meaning on their own when matching phrases
STOP_WORDS = frozenset({
    "that", "this", "with", "from", "have", "been", "will", "should", "could",
    "would", "when", "where", "what", "which", "about", "into", "through",
    "during", "before", "after", "above", "below", "between", "under", "again",
    "further", "then", "once", "here", "there", "each", "more", "most", "other",
    "some", "such", "only", "same", "than", "very", "also", "just", "because",
    "always", "never", "their", "they", "them", "your",
})

_NON_WORD = re.compile(r"[^\w\s]")
_SPACES = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercase, replace punctuation with spaces, collapse whitespace."""
    if not isinstance(text, str):
        return ""
    text = _NON_WORD.sub(" ", text.lower())
    return _SPACES.sub(" ", text).strip()


def phrase_keywords(phrase: str) -> List[str]:
    """Significant words of a phrase: longer than 3 characters and not a stop word."""
    return [
        word for word in normalize_text(phrase).split()
        if len(word) > 3 and word not in STOP_WORDS
    ]


def extract_keywords(must_have: List[str], good_to_have: List[str]) -> List[str]:
    """Ordered, de-duplicated keywords of all mustHave and goodToHave phrases."""
    keywords: List[str] = []
    for phrase in list(must_have) + list(good_to_have):
        for word in phrase_keywords(phrase):
            if word not in keywords:
                keywords.append(word)
    return keywords


# =============================================================================
# RUBRIC
# =============================================================================

class Rubric(BaseModel):
    """
    Scoring criteria for one question.

    Invariants are enforced at construction:
    3 <= |must_have| <= 8, |good_to_have| <= 6, |red_flags| <= 8,
    no empty or over-long phrases, no duplicates within or across categories.
    """
    model_config = ConfigDict(frozen=True)

    must_have: List[str]
    good_to_have: List[str] = Field(default_factory=list)
    red_flags: List[str] = Field(default_factory=list)
    ideal_answer: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _sanitize(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("must_have", "good_to_have", "red_flags"):
            phrases = data.get(key)
            if phrases is None:
                continue
            if not isinstance(phrases, list):
                raise ValueError(f"{key} must be a list of phrases")
            cleaned = []
            for phrase in phrases:
                if not isinstance(phrase, str) or not phrase.strip():
                    raise ValueError(f"{key} contains an empty phrase")
                cleaned.append(phrase.strip())
            data[key] = cleaned
        ideal = data.get("ideal_answer")
        if isinstance(ideal, str):
            data["ideal_answer"] = ideal.strip() or None
        if not data.get("keywords"):
            data["keywords"] = extract_keywords(
                data.get("must_have") or [], data.get("good_to_have") or []
            )
        return data

    @model_validator(mode="after")
    def _check_invariants(self):
        issues = validate_rubric(self)
        if issues:
            raise ValueError("; ".join(issues))
        return self


def _has_duplicates(phrases: List[str]) -> bool:
    lowered = [p.lower().strip() for p in phrases]
    return len(set(lowered)) != len(lowered)


def validate_rubric(rubric: Rubric) -> List[str]:
    """Validate a rubric and return any issues."""
    issues = []

    if len(rubric.must_have) < MIN_MUST_HAVE:
        issues.append(f"must_have needs at least {MIN_MUST_HAVE} items, got {len(rubric.must_have)}")
    if len(rubric.must_have) > MAX_MUST_HAVE:
        issues.append(f"must_have allows at most {MAX_MUST_HAVE} items, got {len(rubric.must_have)}")
    if len(rubric.good_to_have) > MAX_GOOD_TO_HAVE:
        issues.append(
            f"good_to_have allows at most {MAX_GOOD_TO_HAVE} items, got {len(rubric.good_to_have)}"
        )
    if len(rubric.red_flags) > MAX_RED_FLAGS:
        issues.append(f"red_flags allows at most {MAX_RED_FLAGS} items, got {len(rubric.red_flags)}")

    for name, phrases in [
        ("must_have", rubric.must_have),
        ("good_to_have", rubric.good_to_have),
        ("red_flags", rubric.red_flags),
    ]:
        if _has_duplicates(phrases):
            issues.append(f"{name} contains duplicates")
        too_long = [p for p in phrases if len(p) > MAX_PHRASE_LENGTH]
        if too_long:
            issues.append(f"{name} items must be short phrases (max {MAX_PHRASE_LENGTH} chars)")

    everything = rubric.must_have + rubric.good_to_have + rubric.red_flags
    if not issues and _has_duplicates(everything):
        issues.append("Duplicate items found across must_have, good_to_have and red_flags")

    return issues


# =============================================================================
# QUESTION
# =============================================================================

class Question(BaseModel):
    """An interview question as served by the question repository."""
    model_config = ConfigDict(frozen=True)

    id: str
    domain: str
    topic: str
    sub_topic: Optional[str] = None
    difficulty: Difficulty
    text: str = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)
    hints: List[str] = Field(default_factory=list)
    company_tags: List[str] = Field(default_factory=list)
    is_active: bool = True
    rubric: Optional[Rubric] = None

    def get_hint(self, attempt_number: int) -> Optional[str]:
        """Return the Nth hint (1-based), capped at the last hint. None if there are no hints."""
        if not self.hints:
            return None
        index = min(max(attempt_number, 1), len(self.hints)) - 1
        return self.hints[index]
