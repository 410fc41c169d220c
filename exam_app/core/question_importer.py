"""Utilities for turning pasted question sets into validated questions.

Two input formats are accepted.

JSON (what the web client pastes): an array of objects such as

    [
      {"question": "What does HTML stand for?",
       "options": ["HyperText Markup Language", "High Tech Machine Language"],
       "correctAnswer": "HyperText Markup Language",
       "topic": "Web Basics"},
      {"question": "Which are JavaScript primitives?",
       "options": ["string", "Object", "boolean"],
       "correctAnswers": ["string", "boolean"]}
    ]

Plain text blocks (handy when writing question sets by hand or with AI tools),
separated by blank lines or '---':

    Q: Which HTTP methods are idempotent?
    A: GET
    B: POST
    C: PUT
    CORRECT: A, C
    EXPLANATION: POST creates a new resource on every call.
    TOPIC: HTTP

Both formats end up in normalize_question_set, which validates the whole
batch and fails on the first malformed element. Partial batches are never
returned.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from string import ascii_uppercase
from typing import Any

from exam_app.core.errors import ValidationError
from exam_app.core.models import Question, QuestionKind


def normalize_question_set(records: Sequence[Any]) -> list[Question]:
    """Validate loosely-typed question records and build Question objects."""
    if isinstance(records, (str, bytes)) or not isinstance(records, Sequence):
        raise ValidationError("Questions must be a JSON array")

    questions: list[Question] = []
    seen_ids: set[str] = set()
    for index, record in enumerate(records):
        try:
            question = _normalize_record(record, index)
        except ValidationError as exc:
            raise ValidationError(f"Invalid question at index {index}: {exc}") from exc
        if question.id in seen_ids:
            raise ValidationError(
                f"Invalid question at index {index}: duplicate id '{question.id}'"
            )
        seen_ids.add(question.id)
        questions.append(question)
    return questions


def parse_question_set(text: str) -> list[Question]:
    """Parse pasted JSON text into questions."""
    if not text or not text.strip():
        raise ValidationError("Paste your questions JSON first")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Invalid JSON: {exc.msg}") from exc
    if not isinstance(payload, list):
        raise ValidationError("Questions must be a JSON array")
    return normalize_question_set(payload)


def parse_question_blocks(text: str) -> list[Question]:
    """Parse the plain-text block format into questions."""
    records: list[dict[str, Any]] = []
    for index, block in enumerate(_split_blocks(text)):
        try:
            records.append(_parse_block(block))
        except ValidationError as exc:
            raise ValidationError(f"Invalid question at index {index}: {exc}") from exc
    return normalize_question_set(records)


def _normalize_record(record: Any, index: int) -> Question:
    if not isinstance(record, Mapping):
        raise ValidationError("each question must be an object")

    text = record.get("question")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("question text is required")

    raw_options = record.get("options")
    if isinstance(raw_options, (str, bytes)) or not isinstance(raw_options, Sequence) or not raw_options:
        raise ValidationError("options must be a non-empty list")
    options: list[str] = []
    for option in raw_options:
        if not isinstance(option, str) or not option.strip():
            raise ValidationError("option text cannot be empty")
        options.append(option.strip())

    correct_answers = _resolve_correct_answers(record)
    unknown = correct_answers.difference(options)
    if unknown:
        raise ValidationError(
            f"correct answer(s) not among the options: {', '.join(sorted(unknown))}"
        )

    raw_id = record.get("id")
    question_id = str(raw_id).strip() if raw_id not in (None, "") else f"q_{index + 1}"

    return Question(
        id=question_id,
        text=text.strip(),
        options=tuple(options),
        correct_answers=correct_answers,
        kind=QuestionKind.MULTI if len(correct_answers) > 1 else QuestionKind.SINGLE,
        explanation=_optional_text(record.get("explanation")),
        topic=_optional_text(record.get("topic")),
    )


def _resolve_correct_answers(record: Mapping[str, Any]) -> frozenset[str]:
    many = record.get("correctAnswers")
    single = record.get("correctAnswer")
    if isinstance(many, Sequence) and not isinstance(many, (str, bytes)):
        values = many
    elif isinstance(single, str):
        values = [single]
    else:
        values = []

    resolved = frozenset(value.strip() for value in values if isinstance(value, str) and value.strip())
    if not resolved:
        raise ValidationError("no correct answer given")
    return resolved


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("explanation and topic must be text")
    return value or None


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_block(block: str) -> dict[str, Any]:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letters: list[str] = []
    explanation_lines: list[str] = []
    topic: str | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            raw_value = line.split(":", 1)[1]
            correct_letters = [part.strip().upper() for part in raw_value.replace(";", ",").split(",") if part.strip()]
            current_section = None
            continue

        if upper.startswith("EXPLANATION:"):
            explanation_lines = [line.split(":", 1)[1].strip()]
            current_section = "EXPLANATION"
            continue

        if upper.startswith("TOPIC:"):
            topic = line.split(":", 1)[1].strip() or None
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in ascii_uppercase and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            explanation_lines.append(line)
        elif current_section in options:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise ValidationError(f"Encountered text outside of a known section: '{line}'.")

    letters = sorted(options)
    for letter in correct_letters:
        if letter not in options:
            raise ValidationError(f"CORRECT refers to an unknown option '{letter}'.")

    record: dict[str, Any] = {
        "question": "\n".join(question_lines).strip(),
        "options": [options[letter] for letter in letters],
        "correctAnswers": [options[letter] for letter in correct_letters],
    }
    explanation = "\n".join(explanation_lines).strip()
    if explanation:
        record["explanation"] = explanation
    if topic:
        record["topic"] = topic
    return record
