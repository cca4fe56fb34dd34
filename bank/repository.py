"""
Question repository.

Read-only from the engine's point of view: questions and rubrics are
mutated only by the authoring surface, so lookups need no locking.
"""

from typing import Dict, Iterable, List, Optional

from errors import NotFoundError
from .bank_schema import Difficulty, Question, Rubric


class QuestionRepository:
    """Interface the engine reads questions and rubrics through."""

    def find_question(self, question_id: str) -> Question:
        raise NotImplementedError

    def find_questions_by_criteria(
        self,
        domain: str,
        difficulty: Difficulty,
        exclude_ids: Iterable[str] = (),
    ) -> List[Question]:
        raise NotImplementedError

    def get_rubric(self, question_id: str) -> Optional[Rubric]:
        raise NotImplementedError


class InMemoryQuestionRepository(QuestionRepository):
    """Repository over a list of already-validated questions."""

    def __init__(self, questions: Iterable[Question]):
        self._questions: Dict[str, Question] = {}
        for question in questions:
            self._questions[question.id] = question

    def __len__(self) -> int:
        return len(self._questions)

    def find_question(self, question_id: str) -> Question:
        question = self._questions.get(question_id)
        if question is None:
            raise NotFoundError(f"Question not found: {question_id}")
        return question

    def find_questions_by_criteria(
        self,
        domain: str,
        difficulty: Difficulty,
        exclude_ids: Iterable[str] = (),
    ) -> List[Question]:
        excluded = set(exclude_ids)
        return [
            q for q in self._questions.values()
            if q.is_active
            and q.domain == domain
            and q.difficulty == Difficulty(difficulty)
            and q.id not in excluded
        ]

    def get_rubric(self, question_id: str) -> Optional[Rubric]:
        return self.find_question(question_id).rubric

    def get_domains(self) -> List[str]:
        return sorted({q.domain for q in self._questions.values() if q.is_active})

    def get_topics(self, domain: str) -> List[str]:
        return sorted({q.topic for q in self._questions.values() if q.is_active and q.domain == domain})
