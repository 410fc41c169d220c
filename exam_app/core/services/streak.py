"""Consecutive-day streak bookkeeping."""

from __future__ import annotations

from datetime import datetime, timedelta

from exam_app.core.models import StreakState


def update_streak(state: StreakState, now: datetime) -> StreakState:
    """Return the streak after one submission at ``now``.

    Calendar days are compared in the timezone ``now`` and the stored date are
    expressed in. Call exactly once per recorded submission.
    """
    today = now.date()
    yesterday = today - timedelta(days=1)
    last_day = state.last_activity_date.date() if state.last_activity_date else None

    if last_day is None or last_day < yesterday:
        current = 1
    elif last_day == yesterday:
        current = state.current_streak + 1
    else:
        # Same day (or a stored date ahead of the clock): no double count.
        current = state.current_streak

    return StreakState(
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_activity_date=now,
    )
