"""
Bank Loader

Utilities for loading question banks from JSON files.

A bank file looks like:

    {
        "domain": "DSA",
        "questions": [
            {
                "id": "dsa-hashmap-1",
                "topic": "dsa.hashing",
                "difficulty": "Medium",
                "text": "How does a hash map work internally?",
                "hints": ["Think about buckets"],
                "rubric": {"must_have": [...], "good_to_have": [...], "red_flags": [...]}
            }
        ]
    }

Questions inherit the bank-level `domain` unless they set their own.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from errors import ConfigurationError
from .bank_schema import Question, Rubric

logger = logging.getLogger(__name__)

BANKS_DIR = Path(__file__).parent.parent / "banks"


def load_bank_data(bank_path: Path) -> Dict[str, Any]:
    """Load a raw bank JSON file."""
    bank_path = Path(bank_path)
    if not bank_path.exists():
        raise FileNotFoundError(f"Bank not found: {bank_path}")

    with open(bank_path, "r", encoding="utf-8") as f:
        return json.load(f)


def parse_question(data: Dict[str, Any], default_domain: Optional[str] = None) -> Question:
    """Build a validated Question, failing with ConfigurationError on bad data."""
    data = dict(data)
    if default_domain and not data.get("domain"):
        data["domain"] = default_domain

    question_id = data.get("id", "<missing id>")
    try:
        return Question(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid question '{question_id}': {e}") from e


def parse_rubric(data: Dict[str, Any]) -> Rubric:
    """Build a validated Rubric, failing with ConfigurationError on bad data."""
    try:
        return Rubric(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid rubric: {e}") from e


def load_questions_from_json(bank_path: Path) -> List[Question]:
    """Load and validate every question in a bank file."""
    data = load_bank_data(bank_path)
    domain = data.get("domain")

    questions = [parse_question(q, default_domain=domain) for q in data.get("questions", [])]

    seen = set()
    for question in questions:
        if question.id in seen:
            raise ConfigurationError(f"Duplicate question id in {bank_path}: {question.id}")
        seen.add(question.id)

    without_rubric = [q.id for q in questions if q.rubric is None]
    if without_rubric:
        logger.warning(
            "Bank %s has %d question(s) without a rubric: %s",
            bank_path, len(without_rubric), ", ".join(without_rubric),
        )

    logger.info("Loaded %d questions from %s", len(questions), bank_path)
    return questions


def load_bank(bank_id: str, banks_dir: Path = BANKS_DIR) -> List[Question]:
    """Load a bank by id from the banks directory."""
    return load_questions_from_json(Path(banks_dir) / f"{bank_id}.json")


def load_all_banks(banks_dir: Path = BANKS_DIR) -> List[Question]:
    """Load every bank in a directory."""
    questions: List[Question] = []
    for bank_id in get_available_banks(banks_dir):
        questions.extend(load_bank(bank_id, banks_dir))
    return questions


def save_bank_to_json(questions: List[Question], bank_path: Path) -> None:
    """Save questions to a bank JSON file."""
    with open(bank_path, "w", encoding="utf-8") as f:
        json.dump(
            {"questions": [q.model_dump(mode="json", exclude={"rubric": {"keywords"}}) for q in questions]},
            f,
            indent=2,
        )


def get_available_banks(banks_dir: Path = BANKS_DIR) -> List[str]:
    """List all available bank ids."""
    banks_dir = Path(banks_dir)
    if not banks_dir.exists():
        return []
    return sorted(f.stem for f in banks_dir.glob("*.json"))
