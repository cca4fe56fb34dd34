"""
Question Selector - picks the next question for a session.

Candidates are filtered by domain and difficulty, excluding questions already
asked, then ranked in tiers:
1. the current topic (keeps a line of questioning going)
2. the session's weak topics
3. everything else

The choice within the best non-empty tier is seeded from the session id and
question count, so replaying a session picks the same questions.
"""
import logging
import random
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bank.bank_schema import Difficulty, Question
from bank.repository import QuestionRepository
from errors import NoEligibleQuestionsError

logger = logging.getLogger(__name__)


class SelectionCriteria(BaseModel):
    model_config = ConfigDict(frozen=True)

    domain: str
    difficulty: Difficulty
    asked_question_ids: List[str] = Field(default_factory=list)
    current_topic: Optional[str] = None
    weak_topics: List[str] = Field(default_factory=list)
    session_id: str = ""
    question_count: int = 0


class QuestionSelector:
    def __init__(self, repository: QuestionRepository):
        self.repository = repository

    def select(self, criteria: SelectionCriteria) -> Question:
        """
        Select the next question.

        Raises:
            NoEligibleQuestionsError: nothing matches domain/difficulty after exclusions
        """
        candidates = self.repository.find_questions_by_criteria(
            criteria.domain,
            criteria.difficulty,
            exclude_ids=criteria.asked_question_ids,
        )
        if not candidates:
            raise NoEligibleQuestionsError(
                f"No unasked {criteria.difficulty.value} questions left for {criteria.domain}"
            )

        tier = self._best_tier(candidates, criteria)
        tier = sorted(tier, key=lambda q: q.id)

        rng = random.Random(f"{criteria.session_id}:{criteria.question_count}")
        question = rng.choice(tier)

        logger.debug(
            "Selected %s from %d candidate(s) (tier of %d)",
            question.id, len(candidates), len(tier),
        )
        return question

    def _best_tier(self, candidates: List[Question], criteria: SelectionCriteria) -> List[Question]:
        if criteria.current_topic:
            same_topic = [q for q in candidates if q.topic == criteria.current_topic]
            if same_topic:
                return same_topic

        if criteria.weak_topics:
            weak = set(criteria.weak_topics)
            weak_topic = [q for q in candidates if q.topic in weak]
            if weak_topic:
                return weak_topic

        return candidates
