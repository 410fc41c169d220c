"""Aggregation of per-question accuracy across a user's history."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from exam_app.constants.exam_constants import (
    DRILL_SUBJECT,
    DRILL_TITLE,
    WEAK_AREA_LIMIT,
    WEAK_AREA_MIN_ATTEMPTS,
    WEAK_AREA_WRONG_RATE_THRESHOLD,
)
from exam_app.core.errors import NotFoundError
from exam_app.core.models import ExamDefinition, ExamResult, Question, QuestionKind, WeakArea
from exam_app.core.services.history import HistoryOrder, chronological


@dataclass(slots=True)
class _QuestionStats:
    """Mutable accumulator used while walking the history."""

    question_text: str
    options: tuple[str, ...]
    correct_answers: frozenset[str]
    topic: str | None
    attempts: int = 0
    wrong_count: int = 0


def analyze_weak_areas(
    results: Sequence[ExamResult],
    order: HistoryOrder = HistoryOrder.NEWEST_FIRST,
    limit: int = WEAK_AREA_LIMIT,
) -> list[WeakArea]:
    """Questions attempted at least twice and answered wrong more than 40% of the time.

    The question id is the durable key: when a question reappears with edited
    text or options, the most recent snapshot is reported. Output is sorted
    weakest first; ties keep the order in which questions were first seen.
    """
    stats: dict[str, _QuestionStats] = {}
    for result in chronological(results, order):
        for answer in result.answers:
            entry = stats.get(answer.question_id)
            if entry is None:
                entry = _QuestionStats(
                    question_text=answer.question_text,
                    options=answer.options,
                    correct_answers=answer.correct_answers,
                    topic=answer.topic,
                )
                stats[answer.question_id] = entry
            else:
                entry.question_text = answer.question_text
                entry.options = answer.options or entry.options
                entry.correct_answers = answer.correct_answers
                entry.topic = answer.topic
            entry.attempts += 1
            if not answer.is_correct:
                entry.wrong_count += 1

    weak = [
        WeakArea(
            question_id=question_id,
            question_text=entry.question_text,
            options=entry.options,
            correct_answers=entry.correct_answers,
            topic=entry.topic,
            attempts=entry.attempts,
            wrong_count=entry.wrong_count,
            user_accuracy=round(1 - entry.wrong_count / entry.attempts, 2),
        )
        for question_id, entry in stats.items()
        if entry.attempts >= WEAK_AREA_MIN_ATTEMPTS
        and entry.wrong_count / entry.attempts > WEAK_AREA_WRONG_RATE_THRESHOLD
    ]
    weak.sort(key=lambda area: area.user_accuracy)
    return weak[:limit]


def build_drill_exam(weak_areas: Sequence[WeakArea]) -> ExamDefinition:
    """Turn the weak-area queue into a practice exam."""
    questions = tuple(
        Question(
            id=area.question_id,
            text=area.question_text,
            options=area.options,
            correct_answers=area.correct_answers,
            kind=QuestionKind.MULTI if len(area.correct_answers) > 1 else QuestionKind.SINGLE,
            topic=area.topic,
        )
        for area in weak_areas
        if area.options and area.correct_answers
    )
    if not questions:
        raise NotFoundError("No weak areas to practice yet.")
    return ExamDefinition(title=DRILL_TITLE, subject=DRILL_SUBJECT, questions=questions)
