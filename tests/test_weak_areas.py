from datetime import datetime, timedelta

import pytest

from exam_app.core.errors import NotFoundError
from exam_app.core.models import ExamResult, QuestionKind, ScoredAnswer
from exam_app.core.services.history import HistoryOrder
from exam_app.core.services.weak_areas import analyze_weak_areas, build_drill_exam

BASE = datetime(2024, 1, 1)


def _scored(question_id: str, correct: bool, text: str | None = None) -> ScoredAnswer:
    return ScoredAnswer(
        question_id=question_id,
        question_text=text or f"Question {question_id}?",
        options=("A", "B"),
        selected_answers=frozenset({"A" if correct else "B"}),
        correct_answers=frozenset({"A"}),
        is_correct=correct,
        topic="Topic",
    )


def _result(index: int, *answers: ScoredAnswer) -> ExamResult:
    return ExamResult(
        id=f"r{index}",
        exam_id="exam",
        title="Practice",
        score=sum(a.is_correct for a in answers),
        total=len(answers),
        percentage=0.0,
        time_taken_seconds=10,
        answers=answers,
        created_at=BASE + timedelta(days=index),
    )


def test_requires_two_attempts_and_wrong_rate_over_forty_percent():
    oldest_first = [
        _result(0, _scored("once", False), _scored("weak", False), _scored("ok", True), _scored("edge", True)),
        _result(1, _scored("weak", False), _scored("ok", True), _scored("edge", True)),
        _result(2, _scored("weak", True), _scored("ok", False), _scored("edge", True)),
        _result(3, _scored("edge", True), _scored("ok", True)),
        _result(4, _scored("edge", False), _scored("edge", False)),
    ]

    areas = analyze_weak_areas(oldest_first, HistoryOrder.OLDEST_FIRST)

    # "edge": 2 wrong out of 6 (0.33); "ok": 1 of 4; "once": single attempt.
    assert [a.question_id for a in areas] == ["weak"]
    assert areas[0].attempts == 3
    assert areas[0].wrong_count == 2
    assert areas[0].user_accuracy == 0.33


def test_latest_snapshot_wins_regardless_of_input_order():
    oldest_first = [
        _result(0, _scored("q", False, text="Old wording")),
        _result(1, _scored("q", False, text="New wording")),
    ]

    newest = analyze_weak_areas(list(reversed(oldest_first)), HistoryOrder.NEWEST_FIRST)
    oldest = analyze_weak_areas(oldest_first, HistoryOrder.OLDEST_FIRST)

    assert newest == oldest
    assert newest[0].question_text == "New wording"
    assert newest[0].user_accuracy == 0.0


def test_sorted_weakest_first_and_capped():
    results = [
        _result(i, *[_scored(f"q{n}", n % 2 == 0 and i == 0) for n in range(40)]) for i in range(2)
    ]

    areas = analyze_weak_areas(results, HistoryOrder.OLDEST_FIRST)

    assert len(areas) == 30
    assert [a.user_accuracy for a in areas] == sorted(a.user_accuracy for a in areas)
    assert areas[0].user_accuracy == 0.0


def test_drill_exam_from_weak_areas():
    results = [_result(0, _scored("q", False)), _result(1, _scored("q", False))]

    drill = build_drill_exam(analyze_weak_areas(results, HistoryOrder.OLDEST_FIRST))

    assert [q.id for q in drill.questions] == ["q"]
    assert drill.questions[0].kind is QuestionKind.SINGLE
    assert drill.questions[0].correct_answers == frozenset({"A"})


def test_drill_without_weak_areas():
    with pytest.raises(NotFoundError):
        build_drill_exam([])


def test_three_wrong_of_five_is_included_at_forty_percent_accuracy():
    outcomes = [False, True, False, True, False]
    results = [_result(i, _scored("q", correct)) for i, correct in enumerate(outcomes)]

    areas = analyze_weak_areas(results, HistoryOrder.OLDEST_FIRST)

    assert [(a.question_id, a.attempts, a.wrong_count) for a in areas] == [("q", 5, 3)]
    assert areas[0].user_accuracy == 0.40


def test_two_wrong_of_five_sits_on_the_threshold_and_is_excluded():
    outcomes = [False, True, False, True, True]
    results = [_result(i, _scored("q", correct)) for i, correct in enumerate(outcomes)]

    assert analyze_weak_areas(results, HistoryOrder.OLDEST_FIRST) == []
