"""
Matcher prompt - asks the model which rubric points an answer covers.
The model only judges coverage; scoring stays deterministic.
"""

from typing import List


def get_matcher_system_prompt() -> str:
    """System prompt for the semantic phrase matcher."""
    return """You are evaluating a candidate's answer in a technical interview.

You receive numbered rubric points in three groups:
- MUST: core concepts a correct answer must contain
- GOOD: advanced concepts that show deeper understanding
- FLAG: misconceptions; mark these covered only if the answer ASSERTS them

For every point decide whether the answer covers it. A point is covered if the
concept is explained correctly, even if not in the same words. Mentioning a
term without explaining it is not enough.

Give each verdict a confidence between 0 and 1.

Be strict but fair. Respond with ONLY valid JSON."""


def _format_points(prefix: str, phrases: List[str]) -> str:
    if not phrases:
        return "(none)"
    return "\n".join(f"{prefix}{i}: {phrase}" for i, phrase in enumerate(phrases, 1))


def build_matching_prompt(
    answer_text: str,
    must_have: List[str],
    good_to_have: List[str],
    red_flags: List[str],
) -> str:
    """User prompt listing every point the model has to judge."""
    return f"""## Rubric Points

**MUST:**
{_format_points("M", must_have)}

**GOOD:**
{_format_points("G", good_to_have)}

**FLAG:**
{_format_points("F", red_flags)}

## Candidate Answer

{answer_text}

---

Return one verdict per point id:

```json
{{
    "verdicts": [
        {{"id": "M1", "covered": true, "confidence": 0.9}},
        {{"id": "F1", "covered": false, "confidence": 0.8}}
    ]
}}
```"""
