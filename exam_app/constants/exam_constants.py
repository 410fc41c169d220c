"""Exam-related constants shared across the engines and the API."""

TREND_WINDOW: int = 10
LEADERBOARD_LIMIT: int = 20
NICKNAME_MAX_LENGTH: int = 30
WEAK_AREA_MIN_ATTEMPTS: int = 2
WEAK_AREA_WRONG_RATE_THRESHOLD: float = 0.4
WEAK_AREA_LIMIT: int = 30
SHARE_ID_LENGTH: int = 12
DEFAULT_TOPIC: str = "General"
DRILL_TITLE: str = "Weak Area Drill"
DRILL_SUBJECT: str = "Practice"
# Seconds a finished session stays readable after its last access.
COMPLETED_SESSION_RETENTION_SECONDS: int = 15 * 60
# Seconds an untouched, unfinished session is kept before it is dropped.
IDLE_SESSION_RETENTION_SECONDS: int = 6 * 60 * 60
