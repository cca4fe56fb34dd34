"""
Rubric Generator

Generates a Rubric for a question that was authored without one, using an LLM.
This is the body of the rubric-generation job.

The generator:
1. Asks the model for mustHave / goodToHave / redFlags phrases
2. Trims the lists to the rubric limits
3. Validates the result, so a bad generation fails loudly instead of
   reaching the evaluator
"""

import logging
from typing import Any, Dict, List, Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage

from agents.matcher import parse_matcher_response
from config import load_settings
from errors import ConfigurationError
from jobs import RubricJob
from bank.bank_loader import parse_rubric
from bank.bank_schema import MAX_GOOD_TO_HAVE, MAX_MUST_HAVE, MAX_RED_FLAGS, Rubric

logger = logging.getLogger(__name__)

_generator_llm: Optional[ChatAnthropic] = None


def _get_generator_llm() -> ChatAnthropic:
    global _generator_llm
    if _generator_llm is None:
        settings = load_settings()
        _generator_llm = ChatAnthropic(
            model=settings.matcher.model,
            temperature=0.2,
            max_tokens=1024,
            timeout=settings.matcher.timeout_seconds,
            max_retries=settings.matcher.max_retries,
        )
    return _generator_llm


SYSTEM_PROMPT = """You are an expert technical interviewer writing scoring rubrics.

Given an interview question, produce a rubric for evaluating free-text answers:
- must_have: 3-8 core concepts a correct answer MUST contain
- good_to_have: 0-6 advanced concepts that show deeper understanding
- red_flags: 0-8 common misconceptions or incorrect statements

Each point is a short phrase (max 10 words). No point may appear twice.

Respond with valid JSON only."""


def generate_rubric(
    question_text: str,
    domain: str,
    llm: Optional[Any] = None,
) -> Rubric:
    """
    Generate and validate a rubric for one question.

    Args:
        question_text: The question as shown to the candidate
        domain: Interview domain (e.g., "DSA", "Java")
        llm: Chat model to use (defaults to the configured Anthropic model)

    Returns:
        A validated Rubric

    Raises:
        ConfigurationError: the model output is not a usable rubric
    """
    user_prompt = f"""## Domain
{domain}

## Question
{question_text}

---

Respond with this JSON structure:

```json
{{
    "must_have": ["point 1", "point 2", "point 3"],
    "good_to_have": ["advanced point"],
    "red_flags": ["misconception"],
    "ideal_answer": "A short model answer"
}}
```"""

    messages = [
        SystemMessage(content=SYSTEM_PROMPT),
        HumanMessage(content=user_prompt),
    ]

    model = llm or _get_generator_llm()
    response = model.invoke(messages)
    try:
        parsed = parse_matcher_response(response.content)
    except ValueError as e:
        raise ConfigurationError(f"Rubric generation returned no JSON object: {e}") from e
    if not parsed:
        raise ConfigurationError("Rubric generation returned an empty JSON object")

    return parse_rubric({
        "must_have": _as_phrases(parsed.get("must_have"))[:MAX_MUST_HAVE],
        "good_to_have": _as_phrases(parsed.get("good_to_have"))[:MAX_GOOD_TO_HAVE],
        "red_flags": _as_phrases(parsed.get("red_flags"))[:MAX_RED_FLAGS],
        "ideal_answer": parsed.get("ideal_answer"),
    })


def process_rubric_job(job: RubricJob, llm: Optional[Any] = None) -> Dict[str, Any]:
    """Worker body for a rubric-generation job."""
    logger.info("Generating rubric for question %s", job.question_id)
    rubric = generate_rubric(job.question_text, job.domain, llm=llm)
    return {
        "success": True,
        "question_id": job.question_id,
        "rubric": rubric.model_dump(),
    }


def _as_phrases(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]

