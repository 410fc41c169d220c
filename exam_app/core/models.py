"""Domain models for the exam practice service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class QuestionKind(str, Enum):
    """Single-select or multi-select question."""

    SINGLE = "single"
    MULTI = "multi"


@dataclass(slots=True, frozen=True)
class Question:
    """Multiple-choice question with one or more correct options."""

    id: str
    text: str
    options: tuple[str, ...]
    correct_answers: frozenset[str]
    kind: QuestionKind
    explanation: str | None = None
    topic: str | None = None

    def ordered_correct_answers(self) -> list[str]:
        """Return the correct answers in the order they appear as options."""
        return [option for option in self.options if option in self.correct_answers]


@dataclass(slots=True, frozen=True)
class ExamDefinition:
    """Static question set plus an optional time limit."""

    title: str
    questions: tuple[Question, ...]
    subject: str | None = None
    time_limit_seconds: int | None = None


@dataclass(slots=True, frozen=True)
class AnswerRecord:
    """Finalized answer state for one question of an attempt."""

    question_id: str
    selected_answers: frozenset[str]
    time_spent_seconds: int = 0
    flagged: bool = False


@dataclass(slots=True, frozen=True)
class ScoredAnswer:
    """Per-question snapshot stored with a result."""

    question_id: str
    question_text: str
    options: tuple[str, ...]
    selected_answers: frozenset[str]
    correct_answers: frozenset[str]
    is_correct: bool
    time_spent_seconds: int | None = None
    flagged: bool | None = None
    topic: str | None = None


@dataclass(slots=True, frozen=True)
class ExamResult:
    """Scored record of a submitted attempt."""

    id: str
    exam_id: str
    title: str
    score: int
    total: int
    percentage: float
    time_taken_seconds: int
    answers: tuple[ScoredAnswer, ...]
    created_at: datetime
    subject: str | None = None


@dataclass(slots=True, frozen=True)
class StreakState:
    """Consecutive-day activity counters of a user."""

    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: datetime | None = None


@dataclass(slots=True, frozen=True)
class UserProfile:
    """Public part of a user account, including accumulated history."""

    user_id: str
    email: str
    created_at: datetime
    name: str | None = None
    exam_history: tuple[ExamResult, ...] = ()
    streak: StreakState = StreakState()


@dataclass(slots=True, frozen=True)
class UserAccount:
    """Stored user: profile plus credential hash."""

    profile: UserProfile
    password_hash: str


@dataclass(slots=True, frozen=True)
class LeaderboardEntry:
    """One public score submission for a shared exam."""

    nickname: str
    score: float
    total: int
    percentage: float
    time_taken_seconds: int
    submitted_at: datetime


@dataclass(slots=True, frozen=True)
class SavedExam:
    """Exam kept in a user's bank, optionally shared publicly."""

    id: str
    definition: ExamDefinition
    created_at: datetime
    owner_id: str | None = None
    share_id: str | None = None
    is_public: bool = False
    leaderboard: tuple[LeaderboardEntry, ...] = ()


@dataclass(slots=True, frozen=True)
class WeakArea:
    """Question the user keeps getting wrong."""

    question_id: str
    question_text: str
    options: tuple[str, ...]
    correct_answers: frozenset[str]
    topic: str | None
    attempts: int
    wrong_count: int
    user_accuracy: float


@dataclass(slots=True, frozen=True)
class HistorySummary:
    total_exams: int
    avg_score: int
    best_score: float
    total_time_seconds: int


@dataclass(slots=True, frozen=True)
class TrendPoint:
    percentage: float


@dataclass(slots=True, frozen=True)
class TopicScore:
    topic: str
    correct: int
    total: int
    percentage: float
