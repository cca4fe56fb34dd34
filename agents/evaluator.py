"""
Evaluator - scores one answer against one rubric.

Coverage verdicts come from a pluggable PhraseMatcher; everything after that
(score, grade, feedback, follow-up flag) is deterministic.

The primary matcher runs under a timeout. If it fails or times out, the
fallback matcher is tried once. If that fails too the evaluation fails;
there is no silent zero score.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Dict, List, Optional, Tuple

from agents.matcher import (
    GOOD_TO_HAVE,
    MUST_HAVE,
    RED_FLAG,
    MatchVerdict,
    PhraseMatcher,
)
from agents.scoring import build_feedback, compute_score, grade_for, needs_follow_up
from bank.bank_schema import Rubric
from config import ScoringWeights
from errors import ConfigurationError, EvaluationTimeoutError, EvaluationUnavailableError
from state import EvaluationResult

logger = logging.getLogger(__name__)

Verdicts = Dict[str, List[MatchVerdict]]


class EvaluationEngine:
    """
    Turns (answer, rubric) into an EvaluationResult.

    Holds no per-session state; one engine can serve many sessions.
    """

    def __init__(
        self,
        primary: PhraseMatcher,
        fallback: Optional[PhraseMatcher] = None,
        weights: Optional[ScoringWeights] = None,
        timeout_seconds: float = 20.0,
        max_workers: int = 4,
    ):
        self.primary = primary
        self.fallback = fallback
        self.weights = weights or ScoringWeights()
        self.timeout_seconds = timeout_seconds
        # Fallback calls never queue behind primary calls
        self._primary_executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="matcher")
        self._fallback_executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="fallback")

    def shutdown(self):
        self._primary_executor.shutdown(wait=False)
        self._fallback_executor.shutdown(wait=False)

    def evaluate(
        self,
        answer_text: str,
        rubric: Optional[Rubric],
        auxiliary_text: Optional[str] = None,
    ) -> EvaluationResult:
        """
        Score an answer.

        Args:
            answer_text: The candidate's free-text answer (may be empty)
            rubric: The question's rubric
            auxiliary_text: Extra text appended before analysis (e.g. a
                whiteboard description)

        Raises:
            ConfigurationError: the question has no rubric
            EvaluationUnavailableError: neither matcher produced verdicts
            EvaluationTimeoutError: the last matcher attempt timed out
        """
        if rubric is None:
            raise ConfigurationError("Cannot evaluate an answer without a rubric")

        text = (answer_text or "").strip()
        if auxiliary_text and auxiliary_text.strip():
            text = f"{text}\n\n{auxiliary_text.strip()}".strip()

        if not text:
            verdicts = _empty_answer_verdicts(rubric)
            matcher_name = "none"
        else:
            verdicts, matcher_name = self._extract(rubric, text)

        return self._score(rubric, verdicts, matcher_name)

    # =========================================================================
    # EXTRACTION
    # =========================================================================

    def _extract(self, rubric: Rubric, text: str) -> Tuple[Verdicts, str]:
        try:
            return self._run_matcher(self.primary, self._primary_executor, rubric, text), self.primary.name
        except Exception as e:
            if self.fallback is None or self.fallback is self.primary:
                self._raise_unavailable(e)
            logger.warning(
                "Primary matcher '%s' failed (%s), retrying with '%s'",
                self.primary.name, _describe(e), self.fallback.name,
            )

        try:
            return self._run_matcher(self.fallback, self._fallback_executor, rubric, text), self.fallback.name
        except Exception as e:
            self._raise_unavailable(e)

    def _run_matcher(
        self, matcher: PhraseMatcher, executor: ThreadPoolExecutor, rubric: Rubric, text: str
    ) -> Verdicts:
        future = executor.submit(matcher.match_all, rubric, text)
        try:
            verdicts = future.result(timeout=self.timeout_seconds)
        except FuturesTimeoutError:
            # No-op once the call is running
            future.cancel()
            raise
        _check_verdicts(rubric, verdicts)
        return verdicts

    def _raise_unavailable(self, error: Exception):
        logger.error("Evaluation failed: %s", _describe(error))
        if isinstance(error, FuturesTimeoutError):
            raise EvaluationTimeoutError(
                f"Matcher did not answer within {self.timeout_seconds}s"
            ) from error
        raise EvaluationUnavailableError(f"No matcher could evaluate the answer: {error}") from error

    # =========================================================================
    # SCORING
    # =========================================================================

    def _score(self, rubric: Rubric, verdicts: Verdicts, matcher_name: str) -> EvaluationResult:
        covered, missing = [], []
        for phrase, verdict in zip(rubric.must_have, verdicts[MUST_HAVE]):
            if verdict.covered:
                covered.append(phrase)
            else:
                missing.append(phrase)

        covered_good = [
            phrase for phrase, verdict in zip(rubric.good_to_have, verdicts[GOOD_TO_HAVE])
            if verdict.covered
        ]
        wrong_claims = [
            phrase for phrase, verdict in zip(rubric.red_flags, verdicts[RED_FLAG])
            if verdict.covered
        ]

        all_verdicts = verdicts[MUST_HAVE] + verdicts[GOOD_TO_HAVE] + verdicts[RED_FLAG]
        confidence = sum(v.confidence for v in all_verdicts) / len(all_verdicts)

        score, breakdown = compute_score(
            len(covered), len(rubric.must_have), len(covered_good), len(wrong_claims), self.weights
        )

        return EvaluationResult(
            score=score,
            grade=grade_for(score),
            covered=covered,
            covered_good=covered_good,
            missing=missing,
            wrong_claims=wrong_claims,
            confidence=round(confidence, 2),
            breakdown=breakdown,
            coverage=round(len(covered) / len(rubric.must_have), 2),
            feedback=build_feedback(covered, missing, wrong_claims),
            needs_follow_up=needs_follow_up(score, missing, self.weights),
            matcher=matcher_name,
        )


def _empty_answer_verdicts(rubric: Rubric) -> Verdicts:
    nothing = MatchVerdict(covered=False, confidence=1.0)
    return {
        MUST_HAVE: [nothing] * len(rubric.must_have),
        GOOD_TO_HAVE: [nothing] * len(rubric.good_to_have),
        RED_FLAG: [nothing] * len(rubric.red_flags),
    }


def _check_verdicts(rubric: Rubric, verdicts: Verdicts):
    expected = {
        MUST_HAVE: len(rubric.must_have),
        GOOD_TO_HAVE: len(rubric.good_to_have),
        RED_FLAG: len(rubric.red_flags),
    }
    for category, count in expected.items():
        if len(verdicts.get(category, [])) != count:
            raise ValueError(
                f"Matcher returned {len(verdicts.get(category, []))} {category} verdicts, expected {count}"
            )


def _describe(error: Exception) -> str:
    if isinstance(error, FuturesTimeoutError):
        return "timed out"
    return f"{type(error).__name__}: {error}"
