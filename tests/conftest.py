"""
Shared fixtures: a small in-memory question bank and deterministic matchers.
No test talks to a model.
"""
import sys
import threading
import time
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from agents.evaluator import EvaluationEngine
from agents.matcher import PhraseMatcher, MatchVerdict
from bank.bank_loader import parse_question
from bank.bank_schema import normalize_text
from bank.repository import InMemoryQuestionRepository
from config import EngineSettings, PolicyLimits
from jobs import InMemoryJobQueue
from session_store import InMemorySessionStore


HASH_MAP_RUBRIC = {
    "must_have": ["hashing", "bucket array", "collision handling", "load factor", "rehashing"],
    "good_to_have": ["open addressing", "amortized constant time", "chaining with linked lists"],
    "red_flags": ["lookups are always constant time", "keys are kept sorted"],
}


# =============================================================================
# MATCHERS
# =============================================================================

class LiteralMatcher(PhraseMatcher):
    """Covers a phrase when its normalized words appear verbatim in the answer."""

    name = "literal"

    def __init__(self):
        self.calls = 0

    def match(self, phrase, answer_text, category="must_have"):
        self.calls += 1
        covered = f" {normalize_text(phrase)} " in f" {normalize_text(answer_text)} "
        return MatchVerdict(covered=covered, confidence=0.9 if covered else 0.7)


class FailingMatcher(PhraseMatcher):
    name = "failing"

    def __init__(self):
        self.calls = 0

    def match(self, phrase, answer_text, category="must_have"):
        self.calls += 1
        raise RuntimeError("model unavailable")


class SlowMatcher(PhraseMatcher):
    name = "slow"

    def __init__(self, delay=0.5):
        self.delay = delay

    def match(self, phrase, answer_text, category="must_have"):
        time.sleep(self.delay)
        return MatchVerdict(covered=True, confidence=1.0)


class HangingMatcher(PhraseMatcher):
    """Blocks once per answer for `delay` seconds, like a model call that never returns."""

    name = "hanging"

    def __init__(self, delay=1.0):
        self.delay = delay

    def match(self, phrase, answer_text, category="must_have"):
        return MatchVerdict(covered=False, confidence=0.5)

    def match_all(self, rubric, answer_text):
        time.sleep(self.delay)
        return super().match_all(rubric, answer_text)


class ShortMatcher(PhraseMatcher):
    """Returns too few verdicts, like a truncated model response."""

    name = "short"

    def match_all(self, rubric, answer_text):
        return {"must_have": [], "good_to_have": [], "red_flags": []}


class BlockingMatcher(LiteralMatcher):
    """Holds the cycle open until released, to exercise per-session locking."""

    name = "blocking"

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def match_all(self, rubric, answer_text):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().match_all(rubric, answer_text)


class NeverCalledMatcher(PhraseMatcher):
    name = "never"

    def match(self, phrase, answer_text, category="must_have"):
        raise AssertionError("matcher should not be called")


# =============================================================================
# BANK
# =============================================================================

def make_question(question_id, topic, difficulty, must_have=None, hints=None, rubric=True, **extra):
    data = {
        "id": question_id,
        "domain": extra.pop("domain", "DSA"),
        "topic": topic,
        "difficulty": difficulty,
        "text": f"Question {question_id}?",
        "hints": hints if hints is not None else [f"{question_id} hint one", f"{question_id} hint two"],
    }
    if rubric:
        data["rubric"] = {
            "must_have": must_have or [f"{question_id} point {i}" for i in range(1, 4)],
            "good_to_have": [f"{question_id} bonus"],
            "red_flags": [f"{question_id} mistake"],
        }
    data.update(extra)
    return parse_question(data)


def build_questions():
    return [
        make_question("hash-1", "dsa.hashing", "Medium", must_have=HASH_MAP_RUBRIC["must_have"]),
        make_question("hash-2", "dsa.hashing", "Medium"),
        make_question("tree-1", "dsa.trees", "Medium"),
        make_question("graph-1", "dsa.graphs", "Medium"),
        make_question("array-1", "dsa.arrays", "Easy"),
        make_question("array-2", "dsa.arrays", "Easy"),
        make_question("stack-1", "dsa.stacks", "Easy"),
        make_question("graph-2", "dsa.graphs", "Hard"),
        make_question("heap-1", "dsa.heaps", "Hard"),
        make_question("inactive-1", "dsa.hashing", "Medium", is_active=False),
    ]


@pytest.fixture
def questions():
    return build_questions()


@pytest.fixture
def repository(questions):
    return InMemoryQuestionRepository(questions)


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def dispatcher():
    return InMemoryJobQueue()


@pytest.fixture
def settings():
    return EngineSettings(policy=PolicyLimits())


@pytest.fixture
def literal_matcher():
    return LiteralMatcher()


@pytest.fixture
def evaluator(literal_matcher):
    engine = EvaluationEngine(literal_matcher, fallback=None, timeout_seconds=5)
    yield engine
    engine.shutdown()


# =============================================================================
# ANSWER HELPERS
# =============================================================================

def full_answer(question, bonus=0):
    """Answer that covers every must-have point and `bonus` good-to-have points."""
    rubric = question.rubric
    return ". ".join(rubric.must_have + rubric.good_to_have[:bonus])


def partial_answer(question, covered):
    return ". ".join(question.rubric.must_have[:covered])
