"""Scoring of finalized attempts."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from uuid import uuid4

from exam_app.constants.exam_constants import DEFAULT_TOPIC
from exam_app.core.errors import EmptyExamError
from exam_app.core.models import AnswerRecord, ExamDefinition, ExamResult, ScoredAnswer, TopicScore


def is_answer_correct(selected: Iterable[str], correct: Iterable[str]) -> bool:
    """Exact set equality: no partial credit, and an empty selection is always wrong."""
    selected_set = frozenset(selected)
    return bool(selected_set) and selected_set == frozenset(correct)


def calculate_percentage(score: int, total: int) -> float:
    if total <= 0:
        raise EmptyExamError("Cannot score an exam without questions.")
    return round(score / total * 100, 2)


def score_attempt(
    definition: ExamDefinition,
    answers: Sequence[AnswerRecord],
    *,
    exam_id: str,
    time_taken_seconds: int,
    created_at: datetime,
    result_id: str | None = None,
) -> ExamResult:
    """Compute correctness per question and the aggregate score.

    Questions without an AnswerRecord count as an empty selection. Records for
    question ids outside the definition are ignored.
    """
    total = len(definition.questions)
    if total == 0:
        raise EmptyExamError("Cannot score an exam without questions.")

    records = {record.question_id: record for record in answers}
    scored: list[ScoredAnswer] = []
    for question in definition.questions:
        record = records.get(question.id)
        selected = record.selected_answers if record else frozenset()
        scored.append(
            ScoredAnswer(
                question_id=question.id,
                question_text=question.text,
                options=question.options,
                selected_answers=selected,
                correct_answers=question.correct_answers,
                is_correct=is_answer_correct(selected, question.correct_answers),
                time_spent_seconds=record.time_spent_seconds if record else None,
                flagged=record.flagged if record else None,
                topic=question.topic,
            )
        )

    score = sum(1 for answer in scored if answer.is_correct)
    return ExamResult(
        id=result_id or uuid4().hex,
        exam_id=exam_id,
        title=definition.title,
        subject=definition.subject,
        score=score,
        total=total,
        percentage=calculate_percentage(score, total),
        time_taken_seconds=max(0, int(time_taken_seconds)),
        answers=tuple(scored),
        created_at=created_at,
    )


def topic_breakdown(result: ExamResult) -> list[TopicScore]:
    """Per-topic correctness of a result, weakest topic first."""
    counts: dict[str, list[int]] = {}
    for answer in result.answers:
        entry = counts.setdefault(answer.topic or DEFAULT_TOPIC, [0, 0])
        entry[0] += 1 if answer.is_correct else 0
        entry[1] += 1

    breakdown = [
        TopicScore(topic=topic, correct=correct, total=total, percentage=calculate_percentage(correct, total))
        for topic, (correct, total) in counts.items()
    ]
    return sorted(breakdown, key=lambda item: item.percentage)
