# src/llm/token_budget.py - v1
"""Token estimation for prompt budgeting.

Character heuristic: 1 token is roughly 4 characters of English text.
"""

from __future__ import annotations

from draftsmith.llm.models import Prompt

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate tokens for a text using the character heuristic."""
    if not text:
        return 0
    return (len(text) + CHARS_PER_TOKEN - 1) // CHARS_PER_TOKEN


def estimate_prompt_tokens(prompt: Prompt) -> int:
    """Estimate input tokens for a full role-separated prompt."""
    return estimate_tokens(prompt.system) + sum(
        estimate_tokens(m.content) for m in prompt.messages
    )


def fits_budget(estimated: int, budget: int) -> bool:
    """True when an estimate is within budget."""
    return estimated <= budget
