"""Utilities for exporting questions back to the formats accepted on import."""

from __future__ import annotations

from string import ascii_uppercase
from typing import Any

from exam_app.core.errors import ValidationError
from exam_app.core.models import Question, QuestionKind


def to_raw_records(questions: list[Question]) -> list[dict[str, Any]]:
    """Convert questions to the loosely-typed records users paste."""
    records: list[dict[str, Any]] = []
    for question in questions:
        record: dict[str, Any] = {
            "id": question.id,
            "question": question.text,
            "options": list(question.options),
        }
        if question.kind is QuestionKind.MULTI:
            record["correctAnswers"] = question.ordered_correct_answers()
        else:
            record["correctAnswer"] = question.ordered_correct_answers()[0]
        if question.explanation:
            record["explanation"] = question.explanation
        if question.topic:
            record["topic"] = question.topic
        records.append(record)
    return records


def serialize_question_blocks(questions: list[Question]) -> str:
    blocks = [_serialize_question(question) for question in questions]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(question: Question) -> str:
    if len(question.options) > len(ascii_uppercase):
        raise ValidationError(f"Question '{question.id}' has too many options for the text format.")

    lines: list[str] = []
    question_lines = question.text.splitlines() or [question.text]
    lines.append(f"Q: {question_lines[0]}")
    lines.extend(question_lines[1:])

    letters: dict[str, str] = {}
    for letter, option_text in zip(ascii_uppercase, question.options):
        letters[option_text] = letter
        option_lines = option_text.splitlines() or [option_text]
        lines.append(f"{letter}: {option_lines[0]}")
        lines.extend(option_lines[1:])

    correct = ", ".join(letters[answer] for answer in question.ordered_correct_answers())
    lines.append(f"CORRECT: {correct}")

    if question.explanation:
        lines.append(f"EXPLANATION: {question.explanation}")
    if question.topic:
        lines.append(f"TOPIC: {question.topic}")

    return "\n".join(lines)
