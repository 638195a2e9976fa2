"""Prompt text sent to the AI advisor, adapted to the learner's grade level."""

from __future__ import annotations

GRADE_LEVEL_ADAPTATIONS: dict[str, str] = {
    "elementary": (
        "Explain concepts using simple words, short sentences, and fun examples. "
        "Use analogies a young child would understand."
    ),
    "middle_school": (
        "Explain concepts clearly with some technical terms. "
        "Use relatable examples for teenagers."
    ),
    "high_school": (
        "Provide detailed explanations with proper terminology. "
        "Include real-world applications."
    ),
    "college": (
        "Use advanced terminology and in-depth explanations. "
        "Reference academic concepts and theories."
    ),
    "adult": "Provide comprehensive, professional explanations suitable for lifelong learners.",
}

DEFAULT_GRADE_LEVEL = "high_school"


def adaptation_for(grade_level: str | None) -> str:
    """Adaptation tier for a grade level; unknown levels use the high-school tier."""
    return GRADE_LEVEL_ADAPTATIONS.get(grade_level or DEFAULT_GRADE_LEVEL) or GRADE_LEVEL_ADAPTATIONS[
        DEFAULT_GRADE_LEVEL
    ]


def explanation_prompt(question_text: str, correct_option: str) -> str:
    return (
        f'Briefly explain why the correct answer to this question is correct: "{question_text}" '
        f"- The answer is: {correct_option}"
    )


def hint_prompt(question_text: str, topic_title: str, subject_name: str) -> str:
    return (
        "Give me a helpful hint (without giving away the answer) for this question: "
        f'"{question_text}". The topic is {topic_title} in {subject_name}.'
    )
