"""Summary statistics over a user's past results."""

from __future__ import annotations

import math
from collections.abc import Sequence
from enum import Enum

from exam_app.constants.exam_constants import TREND_WINDOW
from exam_app.core.models import ExamResult, HistorySummary, TrendPoint


class HistoryOrder(Enum):
    """How a history sequence is ordered; callers must say which."""

    NEWEST_FIRST = "newest_first"
    OLDEST_FIRST = "oldest_first"


def chronological(results: Sequence[ExamResult], order: HistoryOrder) -> list[ExamResult]:
    """Return results oldest first."""
    if order is HistoryOrder.NEWEST_FIRST:
        return list(reversed(results))
    return list(results)


def summarize_history(results: Sequence[ExamResult]) -> HistorySummary:
    """Count, average, best and total time. Order does not matter here."""
    if not results:
        return HistorySummary(total_exams=0, avg_score=0, best_score=0, total_time_seconds=0)

    percentages = [result.percentage for result in results]
    mean = sum(percentages) / len(percentages)
    return HistorySummary(
        total_exams=len(results),
        avg_score=math.floor(mean + 0.5),
        best_score=max(percentages),
        total_time_seconds=sum(result.time_taken_seconds for result in results),
    )


def recent_trend(
    results: Sequence[ExamResult],
    order: HistoryOrder,
    window: int = TREND_WINDOW,
) -> list[TrendPoint]:
    """The most recent ``window`` results, oldest of the window first."""
    if window <= 0:
        return []
    ordered = chronological(results, order)
    return [TrendPoint(percentage=result.percentage) for result in ordered[-window:]]
