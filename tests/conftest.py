from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from exam_app.core.models import ExamDefinition, Question, QuestionKind


class FakeClock:
    """Manually advanced clock injected wherever the code asks for ``now``."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, days: int = 0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, days=days)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 10, 9, 0, 0))


def make_question(
    question_id: str,
    options: tuple[str, ...] = ("A", "B", "C"),
    correct: tuple[str, ...] = ("A",),
    topic: str | None = None,
    explanation: str | None = None,
) -> Question:
    return Question(
        id=question_id,
        text=f"Question {question_id}?",
        options=options,
        correct_answers=frozenset(correct),
        kind=QuestionKind.MULTI if len(correct) > 1 else QuestionKind.SINGLE,
        explanation=explanation,
        topic=topic,
    )


@pytest.fixture
def definition() -> ExamDefinition:
    return ExamDefinition(
        title="Web Basics",
        subject="Web",
        questions=(
            make_question("q1", topic="HTML"),
            make_question("q2", options=("GET", "POST", "PUT"), correct=("GET", "PUT"), topic="HTTP"),
            make_question("q3", correct=("C",)),
        ),
    )


@pytest.fixture
def raw_questions() -> list[dict[str, object]]:
    return [
        {
            "question": "What does HTML stand for?",
            "options": ["HyperText Markup Language", "High Tech Machine Language"],
            "correctAnswer": "HyperText Markup Language",
            "topic": "Web Basics",
            "explanation": "It is the **markup** language of the web.",
        },
        {
            "question": "Which HTTP methods are idempotent?",
            "options": ["GET", "POST", "PUT"],
            "correctAnswers": ["GET", "PUT"],
            "topic": "HTTP",
        },
    ]
