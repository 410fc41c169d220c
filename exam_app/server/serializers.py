"""Conversion of domain records into JSON-ready dictionaries."""

from __future__ import annotations

from datetime import datetime

from exam_app.core.exam_manager import HistoryOverview, SessionEntry, SubmissionOutcome
from exam_app.core.markdown_renderer import renderer
from exam_app.core.models import (
    ExamDefinition,
    ExamResult,
    LeaderboardEntry,
    Question,
    SavedExam,
    ScoredAnswer,
    StreakState,
    UserProfile,
    WeakArea,
)
from exam_app.core.services.scoring import topic_breakdown


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _in_option_order(options: tuple[str, ...], chosen: frozenset[str]) -> list[str]:
    ordered = [option for option in options if option in chosen]
    return ordered + sorted(chosen.difference(options))


def question_to_dict(question: Question, include_answers: bool = True) -> dict[str, object]:
    data: dict[str, object] = {
        "id": question.id,
        "question": question.text,
        "options": list(question.options),
        "type": question.kind.value,
        "topic": question.topic,
    }
    if include_answers:
        data["correct_answers"] = question.ordered_correct_answers()
        data["explanation"] = question.explanation
    return data


def definition_to_dict(definition: ExamDefinition, include_answers: bool = True) -> dict[str, object]:
    return {
        "title": definition.title,
        "subject": definition.subject,
        "time_limit_seconds": definition.time_limit_seconds,
        "questions": [question_to_dict(q, include_answers) for q in definition.questions],
    }


def saved_exam_to_dict(saved: SavedExam) -> dict[str, object]:
    data = definition_to_dict(saved.definition)
    data.update(
        {
            "id": saved.id,
            "share_id": saved.share_id,
            "is_public": saved.is_public,
            "created_at": _iso(saved.created_at),
        }
    )
    return data


def scored_answer_to_dict(answer: ScoredAnswer, render: bool = False) -> dict[str, object]:
    data: dict[str, object] = {
        "question_id": answer.question_id,
        "question": answer.question_text,
        "options": list(answer.options),
        "selected_answers": _in_option_order(answer.options, answer.selected_answers),
        "correct_answers": _in_option_order(answer.options, answer.correct_answers),
        "is_correct": answer.is_correct,
        "time_spent_seconds": answer.time_spent_seconds,
        "flagged": answer.flagged,
        "topic": answer.topic,
    }
    if render:
        data["question_html"] = renderer.render_fragment(answer.question_text)
    return data


def result_summary_to_dict(result: ExamResult) -> dict[str, object]:
    return {
        "id": result.id,
        "exam_id": result.exam_id,
        "title": result.title,
        "subject": result.subject,
        "score": result.score,
        "total": result.total,
        "percentage": result.percentage,
        "time_taken_seconds": result.time_taken_seconds,
        "created_at": _iso(result.created_at),
    }


def result_to_dict(result: ExamResult, render: bool = False) -> dict[str, object]:
    data = result_summary_to_dict(result)
    data["answers"] = [scored_answer_to_dict(answer, render) for answer in result.answers]
    data["topics"] = [
        {"topic": t.topic, "correct": t.correct, "total": t.total, "percentage": t.percentage}
        for t in topic_breakdown(result)
    ]
    return data


def streak_to_dict(streak: StreakState) -> dict[str, object]:
    return {
        "current": streak.current_streak,
        "longest": streak.longest_streak,
        "last_activity_date": _iso(streak.last_activity_date),
    }


def outcome_to_dict(outcome: SubmissionOutcome) -> dict[str, object]:
    return {
        "result": result_to_dict(outcome.result),
        "saved": outcome.saved,
        "save_error": outcome.save_error,
        "streak": streak_to_dict(outcome.streak) if outcome.streak else None,
    }


def overview_to_dict(overview: HistoryOverview) -> dict[str, object]:
    summary = overview.summary
    return {
        "total_exams": summary.total_exams,
        "avg_score": summary.avg_score,
        "best_score": summary.best_score,
        "total_time_seconds": summary.total_time_seconds,
        "trend": [{"percentage": point.percentage} for point in overview.trend],
        "streak": streak_to_dict(overview.streak),
    }


def profile_to_dict(profile: UserProfile) -> dict[str, object]:
    return {
        "id": profile.user_id,
        "email": profile.email,
        "name": profile.name,
        "created_at": _iso(profile.created_at),
    }


def leaderboard_entry_to_dict(entry: LeaderboardEntry) -> dict[str, object]:
    return {
        "nickname": entry.nickname,
        "score": entry.score,
        "total": entry.total,
        "percentage": entry.percentage,
        "time_taken_seconds": entry.time_taken_seconds,
        "submitted_at": _iso(entry.submitted_at),
    }


def weak_area_to_dict(area: WeakArea) -> dict[str, object]:
    return {
        "question_id": area.question_id,
        "question": area.question_text,
        "options": list(area.options),
        "correct_answers": _in_option_order(area.options, area.correct_answers),
        "topic": area.topic,
        "times_attempted": area.attempts,
        "wrong_count": area.wrong_count,
        "user_accuracy": area.user_accuracy,
    }


def session_to_dict(entry: SessionEntry) -> dict[str, object]:
    session = entry.session
    definition = session.definition
    data: dict[str, object] = {
        "session_id": entry.session_id,
        "exam_id": entry.exam_id,
        "share_id": entry.share_id,
        "title": definition.title,
        "subject": definition.subject,
        "state": session.state.name.lower(),
        "question_index": session.question_index,
        "total_questions": len(definition.questions),
        "answered_count": session.get_answered_count(),
        "flagged": session.get_flagged(),
        "time_limit_seconds": definition.time_limit_seconds,
        "remaining_seconds": session.remaining_seconds() if session.is_active() else None,
        "elapsed_seconds": session.elapsed_seconds(),
        "current_question": None,
        "outcome": _reviewed_outcome(entry.outcome, entry.session.definition) if entry.outcome else None,
    }
    if session.is_active():
        question = session.current_question
        current = question_to_dict(question, include_answers=False)
        current.update(
            {
                "question_html": renderer.render_fragment(question.text),
                "selected_answers": _in_option_order(question.options, session.get_selected(question.id)),
                "flagged": session.is_flagged(question.id),
                "time_spent_seconds": session.time_spent(question.id),
            }
        )
        data["current_question"] = current
    return data


def _reviewed_outcome(outcome: SubmissionOutcome, definition: ExamDefinition) -> dict[str, object]:
    explanations = {q.id: q.explanation for q in definition.questions}
    result = result_to_dict(outcome.result, render=True)
    for answer in result["answers"]:  # type: ignore[union-attr]
        answer["explanation_html"] = renderer.render_optional(explanations.get(answer["question_id"]))
    data = outcome_to_dict(outcome)
    data["result"] = result
    return data
