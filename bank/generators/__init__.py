"""
Question Bank Generators

Generators that fill in bank content with an LLM.

Generators:
- rubric_generator: Creates a Rubric for a question that has none

Usage:
    from bank.generators import generate_rubric

    rubric = generate_rubric(
        question_text="How does a hash map handle collisions?",
        domain="DSA",
    )
"""

from .rubric_generator import (
    generate_rubric,
    process_rubric_job,
)

__all__ = [
    "generate_rubric",
    "process_rubric_job",
]
