"""Prompt assembly for one section."""

import json
from typing import Any

from codexgen.contracts.models import CodexSnapshot, SectionTemplate

DEFAULT_WORD_COUNT_TARGET = 1500
DEFAULT_WORD_COUNT_MIN = 1000
DEFAULT_WORD_COUNT_MAX = 2000

CLOSING_INSTRUCTION = (
    "Generate the content for this section following the instructions above. "
    "Write in clean human language without markdown, bullets, or formatting characters."
)


def word_count_instruction(snapshot: CodexSnapshot, template: SectionTemplate) -> str:
    target = template.word_count_target or DEFAULT_WORD_COUNT_TARGET
    low = snapshot.word_count_min or DEFAULT_WORD_COUNT_MIN
    high = snapshot.word_count_max or DEFAULT_WORD_COUNT_MAX
    return (
        f"\n\nTarget length: approximately {target} words "
        f"(minimum {low}, maximum {high})."
    )


def format_input_context(answers: dict[str, Any] | str | None) -> str:
    """Render the run's input payload for the user prompt."""
    if not answers:
        return ""
    if isinstance(answers, str):
        return answers
    lines = ["USER ANSWERS:"]
    for key, value in answers.items():
        if not isinstance(value, str):
            value = json.dumps(value, ensure_ascii=False)
        lines.append(f"{key}: {value}")
    return "\n".join(lines)


def build_user_prompt(
    snapshot: CodexSnapshot,
    template: SectionTemplate,
    answers: dict[str, Any] | str | None,
    prerequisite_content: str | None = None,
) -> str:
    dependency_context = f"\n\n{prerequisite_content}" if prerequisite_content else ""
    return (
        f"{template.prompt}{word_count_instruction(snapshot, template)}\n\n"
        f"{format_input_context(answers)}{dependency_context}\n\n"
        f"{CLOSING_INSTRUCTION}"
    )
