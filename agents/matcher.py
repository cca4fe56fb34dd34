"""
Phrase matchers - decide which rubric phrases an answer covers.

Two implementations share one interface:
- LLMPhraseMatcher: asks an Anthropic model to judge all phrases in one call
- KeywordMatcher: deterministic whole-word matching, used as the fallback
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, ConfigDict, Field

from bank.bank_schema import Rubric, normalize_text, phrase_keywords
from config import MatcherSettings
from prompts.evaluator_prompt import build_matching_prompt, get_matcher_system_prompt

logger = logging.getLogger(__name__)

MUST_HAVE = "must_have"
GOOD_TO_HAVE = "good_to_have"
RED_FLAG = "red_flags"

CATEGORIES = [MUST_HAVE, GOOD_TO_HAVE, RED_FLAG]

_CATEGORY_PREFIX = {MUST_HAVE: "M", GOOD_TO_HAVE: "G", RED_FLAG: "F"}


class MatchVerdict(BaseModel):
    """Coverage verdict for one phrase."""
    model_config = ConfigDict(frozen=True)

    covered: bool
    confidence: float = Field(ge=0.0, le=1.0)


def rubric_phrases(rubric: Rubric) -> Dict[str, List[str]]:
    return {
        MUST_HAVE: list(rubric.must_have),
        GOOD_TO_HAVE: list(rubric.good_to_have),
        RED_FLAG: list(rubric.red_flags),
    }


class PhraseMatcher:
    """
    Judges whether an answer covers rubric phrases.

    Subclasses implement `match`; `match_all` may be overridden to judge a
    whole rubric in one round trip.
    """

    name = "base"

    def match(self, phrase: str, answer_text: str, category: str = MUST_HAVE) -> MatchVerdict:
        raise NotImplementedError

    def match_all(self, rubric: Rubric, answer_text: str) -> Dict[str, List[MatchVerdict]]:
        """Verdicts per category, in rubric order."""
        return {
            category: [self.match(phrase, answer_text, category) for phrase in phrases]
            for category, phrases in rubric_phrases(rubric).items()
        }


# =============================================================================
# KEYWORD MATCHER
# =============================================================================

_SUFFIXES = ("ing", "ed", "es", "s")


def _stem(word: str) -> str:
    for suffix in _SUFFIXES:
        if word.endswith(suffix) and len(word) - len(suffix) >= 4:
            return word[: -len(suffix)]
    return word


def _stemmed_tokens(text: str) -> List[str]:
    return [_stem(word) for word in normalize_text(text).split()]


class KeywordMatcher(PhraseMatcher):
    """
    Deterministic matcher over normalized text.

    mustHave / goodToHave phrases are covered when the whole phrase appears,
    or when at least half of the phrase's keywords appear as whole words.
    Red flags need the whole phrase or every keyword, so a passing mention
    of one term is not read as a wrong claim.
    """

    name = "keyword"

    PHRASE_CONFIDENCE = 0.9
    KEYWORD_CONFIDENCE = 0.6
    MISS_CONFIDENCE = 0.5

    def match(self, phrase: str, answer_text: str, category: str = MUST_HAVE) -> MatchVerdict:
        answer_tokens = _stemmed_tokens(answer_text)
        phrase_tokens = _stemmed_tokens(phrase)

        if phrase_tokens and f" {' '.join(phrase_tokens)} " in f" {' '.join(answer_tokens)} ":
            return MatchVerdict(covered=True, confidence=self.PHRASE_CONFIDENCE)

        keywords = [_stem(word) for word in phrase_keywords(phrase)]
        if not keywords:
            return MatchVerdict(covered=False, confidence=self.MISS_CONFIDENCE)

        present = set(answer_tokens)
        hits = sum(1 for keyword in keywords if keyword in present)

        if category == RED_FLAG:
            covered = hits == len(keywords)
        else:
            covered = hits * 2 >= len(keywords)

        if covered:
            return MatchVerdict(covered=True, confidence=self.KEYWORD_CONFIDENCE)
        return MatchVerdict(covered=False, confidence=self.MISS_CONFIDENCE)


# =============================================================================
# LLM MATCHER
# =============================================================================

class LLMPhraseMatcher(PhraseMatcher):
    """Semantic matcher backed by an Anthropic chat model."""

    name = "llm"

    def __init__(self, settings: Optional[MatcherSettings] = None, llm: Optional[Any] = None):
        self.settings = settings or MatcherSettings()
        self._llm = llm

    @property
    def llm(self):
        if self._llm is None:
            self._llm = ChatAnthropic(
                model=self.settings.model,
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
                timeout=self.settings.timeout_seconds,
                max_retries=self.settings.max_retries,
            )
        return self._llm

    def match(self, phrase: str, answer_text: str, category: str = MUST_HAVE) -> MatchVerdict:
        phrases = {MUST_HAVE: [], GOOD_TO_HAVE: [], RED_FLAG: []}
        phrases[category] = [phrase]
        return self._judge(phrases, answer_text)[category][0]

    def match_all(self, rubric: Rubric, answer_text: str) -> Dict[str, List[MatchVerdict]]:
        return self._judge(rubric_phrases(rubric), answer_text)

    def _judge(self, phrases: Dict[str, List[str]], answer_text: str) -> Dict[str, List[MatchVerdict]]:
        messages = [
            SystemMessage(content=get_matcher_system_prompt()),
            HumanMessage(content=build_matching_prompt(
                answer_text,
                phrases[MUST_HAVE],
                phrases[GOOD_TO_HAVE],
                phrases[RED_FLAG],
            )),
        ]

        response = self.llm.invoke(messages)
        parsed = parse_matcher_response(response.content)

        by_id = {}
        for verdict in parsed.get("verdicts", []):
            if isinstance(verdict, dict) and "id" in verdict:
                by_id[str(verdict["id"]).upper()] = verdict

        results: Dict[str, List[MatchVerdict]] = {}
        for category in CATEGORIES:
            prefix = _CATEGORY_PREFIX[category]
            verdicts = []
            for i in range(1, len(phrases[category]) + 1):
                raw = by_id.get(f"{prefix}{i}")
                if raw is None:
                    raise ValueError(f"Matcher response has no verdict for {prefix}{i}")
                covered = raw.get("covered")
                if not isinstance(covered, bool):
                    raise ValueError(f"Verdict {prefix}{i} has covered={covered!r}, expected true or false")
                confidence = float(raw.get("confidence", 0.7))
                verdicts.append(MatchVerdict(
                    covered=covered,
                    confidence=min(max(confidence, 0.0), 1.0),
                ))
            results[category] = verdicts
        return results


def parse_matcher_response(response_text: str) -> Dict[str, Any]:
    """Parse the matcher's JSON response. Raises ValueError when there is none."""
    text = response_text
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        text = text.split("```")[1].split("```")[0]

    try:
        parsed = json.loads(text.strip())
    except json.JSONDecodeError as e:
        # Tolerate prose around a bare JSON object
        found = re.search(r"\{.*\}", response_text, re.DOTALL)
        if not found:
            raise ValueError("Matcher response is not JSON") from e
        parsed = json.loads(found.group(0))

    if not isinstance(parsed, dict):
        raise ValueError("Matcher response is not a JSON object")
    return parsed


def create_matchers(settings: MatcherSettings):
    """Primary and fallback matchers for the given settings."""
    fallback = KeywordMatcher()
    if settings.use_llm:
        return LLMPhraseMatcher(settings), fallback
    logger.info("LLM matcher disabled, using keyword matching only")
    return fallback, None
