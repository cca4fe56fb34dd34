"""
Question Bank

Questions, rubrics, and the repository the engine reads them through.

Usage:
    from bank import (
        Difficulty,
        Question,
        Rubric,
        InMemoryQuestionRepository,
        load_all_banks,
    )

    repository = InMemoryQuestionRepository(load_all_banks())
    candidates = repository.find_questions_by_criteria("DSA", Difficulty.MEDIUM)
"""

from .bank_schema import (
    # Enums
    Difficulty,
    SessionMode,
    DIFFICULTY_LEVELS,

    # Rubric limits
    MIN_MUST_HAVE,
    MAX_MUST_HAVE,
    MAX_GOOD_TO_HAVE,
    MAX_RED_FLAGS,
    MAX_PHRASE_LENGTH,

    # Text helpers
    normalize_text,
    phrase_keywords,
    extract_keywords,

    # Models
    Rubric,
    Question,
    validate_rubric,
)

from .bank_loader import (
    BANKS_DIR,
    load_bank,
    load_all_banks,
    load_questions_from_json,
    parse_question,
    parse_rubric,
    save_bank_to_json,
    get_available_banks,
)

from .repository import (
    QuestionRepository,
    InMemoryQuestionRepository,
)

__all__ = [
    # Enums
    "Difficulty",
    "SessionMode",
    "DIFFICULTY_LEVELS",

    # Rubric limits
    "MIN_MUST_HAVE",
    "MAX_MUST_HAVE",
    "MAX_GOOD_TO_HAVE",
    "MAX_RED_FLAGS",
    "MAX_PHRASE_LENGTH",

    # Text helpers
    "normalize_text",
    "phrase_keywords",
    "extract_keywords",

    # Models
    "Rubric",
    "Question",
    "validate_rubric",

    # Loader Functions
    "BANKS_DIR",
    "load_bank",
    "load_all_banks",
    "load_questions_from_json",
    "parse_question",
    "parse_rubric",
    "save_bank_to_json",
    "get_available_banks",

    # Repository
    "QuestionRepository",
    "InMemoryQuestionRepository",
]
