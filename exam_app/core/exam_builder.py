"""Assembling exam definitions from normalized questions."""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import replace

from exam_app.core.errors import EmptyExamError, ValidationError
from exam_app.core.models import ExamDefinition, Question


def build_exam_definition(
    title: str,
    questions: Sequence[Question],
    subject: str | None = None,
    time_limit_seconds: int | None = None,
) -> ExamDefinition:
    """Validate exam-level fields and freeze the definition."""
    cleaned_title = (title or "").strip()
    if not cleaned_title:
        raise ValidationError("Please enter an exam title")
    if not questions:
        raise EmptyExamError("No valid questions found")
    if time_limit_seconds is not None:
        if isinstance(time_limit_seconds, bool) or not isinstance(time_limit_seconds, int):
            raise ValidationError("Time limit must be provided as an integer number of seconds.")
        if time_limit_seconds <= 0:
            raise ValidationError("Time limit must be a positive integer.")

    return ExamDefinition(
        title=cleaned_title,
        questions=tuple(questions),
        subject=(subject or "").strip() or None,
        time_limit_seconds=time_limit_seconds,
    )


def prepare_exam(
    definition: ExamDefinition,
    shuffle_questions: bool = False,
    shuffle_options: bool = False,
    question_count: int = 0,
    rng: random.Random | None = None,
) -> ExamDefinition:
    """Apply question sampling and shuffling before an attempt starts.

    A positive ``question_count`` draws a random subset of that many questions
    (or all of them when fewer exist). Shuffled options keep each question's
    correct-answer set, since correctness is compared by option text.
    """
    rng = rng or random.Random()
    questions = list(definition.questions)

    if shuffle_questions:
        rng.shuffle(questions)
    if question_count > 0:
        count = min(question_count, len(questions))
        if not shuffle_questions:
            rng.shuffle(questions)
        questions = questions[:count]

    if shuffle_options:
        shuffled: list[Question] = []
        for question in questions:
            options = list(question.options)
            rng.shuffle(options)
            shuffled.append(replace(question, options=tuple(options)))
        questions = shuffled

    return replace(definition, questions=tuple(questions))
