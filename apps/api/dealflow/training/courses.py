from __future__ import annotations

from collections.abc import Mapping

from dealflow.errors import ValidationError


PASSING_SCORE = 80

# Answer keys for the onboarding exams, keyed by course id then question id.
ANSWER_KEYS: dict[str, dict[str, str]] = {
    "roofing-basics": {"q1": "b", "q2": "c", "q3": "a", "q4": "b", "q5": "c"},
    "sales-techniques": {"q1": "b", "q2": "c", "q3": "a", "q4": "b", "q5": "a"},
    "safety-protocols": {"q1": "a", "q2": "c", "q3": "b", "q4": "a", "q5": "c"},
}

REQUIRED_COURSES: tuple[str, ...] = ("roofing-basics", "sales-techniques", "safety-protocols")


def score_exam(course_id: str, answers: Mapping[str, str]) -> int:
    """Percentage of questions answered correctly, rounded to a whole number.

    Unanswered questions count as wrong; answers to unknown questions are ignored.
    """
    key = ANSWER_KEYS.get(course_id)
    if key is None:
        raise ValidationError(f"Unknown course: {course_id}")
    correct = sum(1 for question, expected in key.items() if answers.get(question) == expected)
    return round(correct / len(key) * 100)


def is_passing(score: int) -> bool:
    return score >= PASSING_SCORE
