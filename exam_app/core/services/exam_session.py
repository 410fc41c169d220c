"""Service tracking the answer state of one exam attempt."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, auto

from exam_app.core.errors import EmptyExamError, NotFoundError, ValidationError
from exam_app.core.models import AnswerRecord, ExamDefinition, Question, QuestionKind

Clock = Callable[[], datetime]


class SessionState(Enum):
    ACTIVE = auto()
    SUBMITTED = auto()
    ABANDONED = auto()


@dataclass(slots=True, frozen=True)
class FinalizedAttempt:
    """Frozen answer set produced when an attempt is submitted or times out."""

    answers: tuple[AnswerRecord, ...]
    time_taken_seconds: int
    finished_at: datetime
    expired: bool = False


class ExamSession:
    """Manages answers, flags, navigation and timing of a single attempt.

    A session is owned by one client; it is not safe to share between
    concurrent callers without external locking.
    """

    def __init__(self, definition: ExamDefinition, clock: Clock = datetime.now) -> None:
        if not definition.questions:
            raise EmptyExamError("Cannot start an exam without questions.")
        self._definition = definition
        self._clock = clock
        self._questions_by_id: dict[str, Question] = {q.id: q for q in definition.questions}
        self._state = SessionState.ACTIVE
        self._question_index: int = 0
        self._selected: dict[str, frozenset[str]] = {}
        self._flagged: set[str] = set()
        self._elapsed: dict[str, float] = {}
        self._started_at = clock()
        self._question_started_at = self._started_at
        self._finalized: FinalizedAttempt | None = None

    @property
    def definition(self) -> ExamDefinition:
        return self._definition

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def question_index(self) -> int:
        return self._question_index

    @property
    def current_question(self) -> Question:
        return self._definition.questions[self._question_index]

    @property
    def finalized(self) -> FinalizedAttempt | None:
        return self._finalized

    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    # --- Answers & flags ---

    def select_answer(self, question_id: str, options: Iterable[str]) -> bool:
        """Update the selection of a question. Returns False when the session is closed."""
        if not self.is_active():
            return False

        question = self._get_question(question_id)
        chosen = list(options)
        unknown = [option for option in chosen if option not in question.options]
        if unknown:
            raise ValidationError(f"Unknown option(s) for question '{question_id}': {', '.join(unknown)}")

        if question.kind is QuestionKind.SINGLE:
            if len(set(chosen)) > 1:
                raise ValidationError(f"Question '{question_id}' accepts a single answer.")
            self._selected[question_id] = frozenset(chosen)
        else:
            current = set(self._selected.get(question_id, frozenset()))
            for option in chosen:
                if option in current:
                    current.remove(option)
                else:
                    current.add(option)
            self._selected[question_id] = frozenset(current)
        return True

    def get_selected(self, question_id: str) -> frozenset[str]:
        self._get_question(question_id)
        return self._selected.get(question_id, frozenset())

    def toggle_flag(self, question_id: str) -> bool:
        """Flip the review flag of a question. Returns False when the session is closed."""
        if not self.is_active():
            return False
        self._get_question(question_id)
        if question_id in self._flagged:
            self._flagged.remove(question_id)
        else:
            self._flagged.add(question_id)
        return True

    def is_flagged(self, question_id: str) -> bool:
        return question_id in self._flagged

    def get_flagged(self) -> list[str]:
        return [q.id for q in self._definition.questions if q.id in self._flagged]

    def get_answered_count(self) -> int:
        return sum(1 for selected in self._selected.values() if selected)

    # --- Navigation & timing ---

    def navigate(self, delta: int) -> int:
        """Move relative to the current question, clamped to the exam bounds."""
        return self.go_to(self._question_index + delta)

    def go_to(self, index: int) -> int:
        """Jump to a question index, clamped to the exam bounds."""
        if not self.is_active():
            return self._question_index
        target = max(0, min(index, len(self._definition.questions) - 1))
        if target != self._question_index:
            self._flush_current_time(self._clock())
            self._question_index = target
        return self._question_index

    def time_spent(self, question_id: str) -> int:
        """Whole seconds spent on a question so far, including the running visit."""
        self._get_question(question_id)
        elapsed = self._elapsed.get(question_id, 0.0)
        if self.is_active() and question_id == self.current_question.id:
            elapsed += _seconds_between(self._question_started_at, self._clock())
        return math.floor(elapsed)

    def elapsed_seconds(self) -> int:
        end = self._finalized.finished_at if self._finalized else self._clock()
        return math.floor(_seconds_between(self._started_at, end))

    def deadline(self) -> datetime | None:
        limit = self._definition.time_limit_seconds
        if limit is None:
            return None
        return self._started_at + timedelta(seconds=limit)

    def remaining_seconds(self) -> int | None:
        deadline = self.deadline()
        if deadline is None:
            return None
        return max(0, math.ceil(_seconds_between(self._clock(), deadline)))

    def is_time_up(self) -> bool:
        deadline = self.deadline()
        return deadline is not None and self._clock() >= deadline

    def check_timer(self) -> FinalizedAttempt | None:
        """Expire the attempt at its deadline if the time limit has passed."""
        if self.is_active() and self.is_time_up():
            return self.expire_timer(at=self.deadline())
        return None

    # --- Terminal transitions ---

    def submit(self) -> FinalizedAttempt:
        """Finalize all answers and close the attempt."""
        return self._finalize(self._clock(), expired=False)

    def expire_timer(self, at: datetime | None = None) -> FinalizedAttempt:
        """Force submission because the time limit elapsed."""
        return self._finalize(at or self._clock(), expired=True)

    def quit(self) -> None:
        """Abandon the attempt, discarding every answer."""
        self._ensure_active()
        self._state = SessionState.ABANDONED
        self._selected.clear()
        self._flagged.clear()
        self._elapsed.clear()

    def _finalize(self, finished_at: datetime, expired: bool) -> FinalizedAttempt:
        self._ensure_active()
        self._flush_current_time(finished_at)
        answers = tuple(
            AnswerRecord(
                question_id=q.id,
                selected_answers=self._selected.get(q.id, frozenset()),
                time_spent_seconds=math.floor(self._elapsed.get(q.id, 0.0)),
                flagged=q.id in self._flagged,
            )
            for q in self._definition.questions
        )
        self._finalized = FinalizedAttempt(
            answers=answers,
            time_taken_seconds=math.floor(_seconds_between(self._started_at, finished_at)),
            finished_at=finished_at,
            expired=expired,
        )
        self._state = SessionState.SUBMITTED
        return self._finalized

    def _flush_current_time(self, now: datetime) -> None:
        question_id = self.current_question.id
        self._elapsed[question_id] = self._elapsed.get(question_id, 0.0) + _seconds_between(
            self._question_started_at, now
        )
        self._question_started_at = now

    def _ensure_active(self) -> None:
        if not self.is_active():
            raise RuntimeError("Exam session is no longer active.")

    def _get_question(self, question_id: str) -> Question:
        question = self._questions_by_id.get(question_id)
        if question is None:
            raise NotFoundError(f"Question '{question_id}' is not part of this exam.")
        return question


def _seconds_between(start: datetime, end: datetime) -> float:
    return max(0.0, (end - start).total_seconds())
