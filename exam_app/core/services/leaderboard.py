"""Ranking of public score submissions for shared exams."""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime
from numbers import Real

from exam_app.constants.exam_constants import LEADERBOARD_LIMIT, NICKNAME_MAX_LENGTH
from exam_app.core.errors import ValidationError
from exam_app.core.models import LeaderboardEntry


def make_entry(
    nickname: str | None,
    score: object,
    total: int,
    time_taken_seconds: int,
    submitted_at: datetime,
    percentage: float | None = None,
) -> LeaderboardEntry:
    """Validate a public submission and build its entry."""
    cleaned = nickname.strip() if isinstance(nickname, str) else ""
    if not cleaned:
        raise ValidationError("nickname and score are required")
    if len(cleaned) > NICKNAME_MAX_LENGTH:
        raise ValidationError(f"nickname must be at most {NICKNAME_MAX_LENGTH} characters")
    if isinstance(score, bool) or not isinstance(score, Real):
        raise ValidationError("nickname and score are required")
    if not math.isfinite(score):
        raise ValidationError("score must be a finite number")
    if total <= 0:
        raise ValidationError("total must be a positive number of questions")
    if not 0 <= score <= total:
        raise ValidationError("score must be between 0 and total")

    if percentage is None:
        percentage = round(float(score) / total * 100, 2)
    elif isinstance(percentage, bool) or not isinstance(percentage, Real) or not math.isfinite(percentage):
        raise ValidationError("percentage must be a finite number")
    elif not 0 <= percentage <= 100:
        raise ValidationError("percentage must be between 0 and 100")
    return LeaderboardEntry(
        nickname=cleaned,
        score=score,
        total=total,
        percentage=percentage,
        time_taken_seconds=max(0, int(time_taken_seconds)),
        submitted_at=submitted_at,
    )


def _ordered(entries: Sequence[LeaderboardEntry]) -> list[LeaderboardEntry]:
    return sorted(entries, key=lambda e: (-e.percentage, e.time_taken_seconds))


def rank_entries(entries: Sequence[LeaderboardEntry], limit: int = LEADERBOARD_LIMIT) -> list[LeaderboardEntry]:
    """Highest percentage first, faster time wins ties, capped at ``limit``."""
    return _ordered(entries)[:limit]


def find_rank(entries: Sequence[LeaderboardEntry], entry: LeaderboardEntry) -> int | None:
    """1-based position of ``entry`` in the full (uncapped) ordering."""
    for position, candidate in enumerate(_ordered(entries), start=1):
        if candidate is entry or candidate == entry:
            return position
    return None
