import pytest

from exam_app.core.errors import ValidationError
from exam_app.core.models import QuestionKind
from exam_app.core.question_importer import (
    normalize_question_set,
    parse_question_blocks,
    parse_question_set,
)


def test_normalize_assigns_ids_and_kinds(raw_questions):
    questions = normalize_question_set(raw_questions)

    assert [q.id for q in questions] == ["q_1", "q_2"]
    assert questions[0].kind is QuestionKind.SINGLE
    assert questions[0].correct_answers == frozenset({"HyperText Markup Language"})
    assert questions[1].kind is QuestionKind.MULTI
    assert questions[1].correct_answers == frozenset({"GET", "PUT"})
    assert questions[0].topic == "Web Basics"


def test_normalize_keeps_supplied_ids_and_strips_options():
    questions = normalize_question_set(
        [{"id": "html-1", "question": "Pick", "options": ["  yes ", "no"], "correctAnswer": " yes"}]
    )

    assert questions[0].id == "html-1"
    assert questions[0].options == ("yes", "no")
    assert questions[0].correct_answers == frozenset({"yes"})


def test_correct_answers_list_wins_over_single():
    questions = normalize_question_set(
        [{"question": "Pick", "options": ["a", "b"], "correctAnswer": "a", "correctAnswers": ["b"]}]
    )

    assert questions[0].correct_answers == frozenset({"b"})


@pytest.mark.parametrize(
    "record",
    [
        {"options": ["a"], "correctAnswer": "a"},
        {"question": "  ", "options": ["a"], "correctAnswer": "a"},
        {"question": "Q", "options": [], "correctAnswer": "a"},
        {"question": "Q", "options": ["a", ""], "correctAnswer": "a"},
        {"question": "Q", "options": ["a", "b"]},
        {"question": "Q", "options": ["a", "b"], "correctAnswer": "c"},
        "not an object",
    ],
)
def test_invalid_record_fails_whole_batch_with_index(raw_questions, record):
    with pytest.raises(ValidationError, match="index 2"):
        normalize_question_set([*raw_questions, record])


def test_duplicate_ids_are_rejected():
    records = [
        {"id": "x", "question": "Q1", "options": ["a"], "correctAnswer": "a"},
        {"id": "x", "question": "Q2", "options": ["a"], "correctAnswer": "a"},
    ]

    with pytest.raises(ValidationError, match="duplicate id 'x'"):
        normalize_question_set(records)


def test_parse_question_set_requires_array():
    with pytest.raises(ValidationError, match="JSON array"):
        parse_question_set('{"question": "Q"}')
    with pytest.raises(ValidationError, match="Invalid JSON"):
        parse_question_set("[{")


def test_parse_question_blocks():
    text = """
Q: Which HTTP methods are idempotent?
A: GET
B: POST
C: PUT
CORRECT: A, C
EXPLANATION: POST creates a new resource on every call.
TOPIC: HTTP
---
Q: What does CSS stand for?
A: Cascading Style Sheets
B: Computer Style Sheets
CORRECT: A
"""

    questions = parse_question_blocks(text)

    assert len(questions) == 2
    assert questions[0].options == ("GET", "POST", "PUT")
    assert questions[0].correct_answers == frozenset({"GET", "PUT"})
    assert questions[0].explanation == "POST creates a new resource on every call."
    assert questions[0].topic == "HTTP"
    assert questions[1].kind is QuestionKind.SINGLE


def test_parse_question_blocks_reports_block_index():
    text = "Q: One\nA: yes\nCORRECT: A\n\nQ: Two\nA: yes\nCORRECT: B\n"

    with pytest.raises(ValidationError, match="index 1"):
        parse_question_blocks(text)


def test_parse_question_set_from_pasted_text():
    questions = parse_question_set(
        '[{"question": "2 + 2?", "options": ["3", "4"], "correctAnswer": "4", "topic": "Math"}]'
    )

    assert questions[0].id == "q_1"
    assert questions[0].correct_answers == frozenset({"4"})
