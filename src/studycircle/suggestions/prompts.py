"""Prompt templates for study suggestions."""

from __future__ import annotations

import enum

SYSTEM_INSTRUCTION = (
    "You are an expert educational assistant. Always provide accurate, helpful, "
    "and pedagogically sound advice. Format responses as valid JSON when requested."
)

DEFAULT_SUBJECT = "General"


class SuggestionType(str, enum.Enum):
    QUESTION_IMPROVEMENT = "question-improvement"
    ANSWER_HINTS = "answer-hints"
    STUDY_PLAN = "study-plan"


_TEMPLATES: dict[SuggestionType, str] = {
    SuggestionType.QUESTION_IMPROVEMENT: """\
As an educational assistant, help improve this question for clarity and learning effectiveness:

Question: "{content}"
Subject: {subject}

Please provide:
1. An improved version of the question with better clarity
2. 3 related follow-up questions that would deepen understanding
3. Suggested tags or topics this question covers

Format your response as JSON with keys: improvedQuestion, followUpQuestions, suggestedTags""",
    SuggestionType.ANSWER_HINTS: """\
As an educational tutor, provide helpful hints for this question without giving away the full answer:

Question: "{content}"
Subject: {subject}

Provide 3 progressive hints that guide the student toward understanding, starting with the most \
general approach and becoming more specific. Format as JSON with key: hints (array of strings)""",
    SuggestionType.STUDY_PLAN: """\
Create a personalized study plan for this topic:

Topic: "{content}"
Subject: {subject}

Provide a structured study plan with:
1. Key concepts to understand
2. Recommended study sequence
3. Practice activities
4. Time estimates for each section

Format as JSON with keys: concepts, sequence, activities, timeEstimates""",
}


def build_prompt(suggestion_type: str, content: str, subject: str | None = None) -> str:
    """Render the user prompt for a suggestion type.

    Raises:
        ValueError: Unknown suggestion type.
    """
    try:
        kind = SuggestionType(suggestion_type)
    except ValueError:
        msg = "Invalid suggestion type"
        raise ValueError(msg) from None
    return _TEMPLATES[kind].format(content=content, subject=subject or DEFAULT_SUBJECT)
