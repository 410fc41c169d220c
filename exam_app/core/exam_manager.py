"""Business logic shared by the HTTP layer: sessions, submissions, bank and sharing."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import Lock
from typing import Any
from uuid import uuid4

from exam_app.constants.exam_constants import (
    COMPLETED_SESSION_RETENTION_SECONDS,
    IDLE_SESSION_RETENTION_SECONDS,
)
from exam_app.core.credentials import CredentialService
from exam_app.core.errors import NotFoundError, PersistenceFailure
from exam_app.core.models import (
    AnswerRecord,
    ExamDefinition,
    ExamResult,
    HistorySummary,
    LeaderboardEntry,
    SavedExam,
    StreakState,
    TrendPoint,
    UserProfile,
    WeakArea,
)
from exam_app.core.question_exporter import serialize_question_blocks, to_raw_records
from exam_app.core.services.exam_session import ExamSession, FinalizedAttempt
from exam_app.core.services.exam_store import ExamStore
from exam_app.core.services.history import HistoryOrder, recent_trend, summarize_history
from exam_app.core.services.leaderboard import find_rank, make_entry, rank_entries
from exam_app.core.services.scoring import score_attempt
from exam_app.core.services.weak_areas import analyze_weak_areas, build_drill_exam

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SubmissionOutcome:
    """Scored result plus what happened when saving it.

    ``saved`` is False for anonymous attempts and when the store failed; the
    result is complete either way.
    """

    result: ExamResult
    saved: bool
    streak: StreakState | None = None
    save_error: str | None = None


@dataclass(slots=True, frozen=True)
class HistoryOverview:
    summary: HistorySummary
    trend: list[TrendPoint]
    streak: StreakState


@dataclass(slots=True)
class SessionEntry:
    """Registry entry for a server-side attempt."""

    session_id: str
    session: ExamSession
    exam_id: str
    last_active: datetime
    owner_id: str | None = None
    share_id: str | None = None
    outcome: SubmissionOutcome | None = None


class ExamManager:
    """Facade over the store, the credential service and the exam engines."""

    def __init__(
        self,
        store: ExamStore,
        credentials: CredentialService,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._lock = Lock()
        self._store = store
        self._credentials = credentials
        self._clock = clock
        self._sessions: dict[str, SessionEntry] = {}

    @property
    def credentials(self) -> CredentialService:
        return self._credentials

    # --- Accounts ---

    def get_user(self, user_id: str) -> UserProfile:
        return self._store.get_user(user_id)

    # --- Exam sessions ---

    def start_session(
        self,
        definition: ExamDefinition,
        owner_id: str | None = None,
        share_id: str | None = None,
        exam_id: str | None = None,
    ) -> SessionEntry:
        session = ExamSession(definition, clock=self._clock)
        entry = SessionEntry(
            session_id=uuid4().hex,
            session=session,
            exam_id=exam_id or self._new_exam_id(),
            last_active=session.started_at,
            owner_id=owner_id,
            share_id=share_id,
        )
        with self._lock:
            self._sweep_sessions()
            self._sessions[entry.session_id] = entry
        return entry

    def start_shared_session(self, share_id: str, owner_id: str | None = None) -> SessionEntry:
        saved = self._store.get_shared_exam(share_id)
        return self.start_session(saved.definition, owner_id=owner_id, share_id=share_id, exam_id=saved.id)

    def get_session(self, session_id: str) -> SessionEntry:
        with self._lock:
            return self._refresh(self._require_session(session_id))

    def select_answer(self, session_id: str, question_id: str, options: Iterable[str]) -> SessionEntry:
        with self._lock:
            entry = self._refresh(self._require_session(session_id))
            entry.session.select_answer(question_id, options)
            return entry

    def navigate(self, session_id: str, delta: int) -> SessionEntry:
        with self._lock:
            entry = self._refresh(self._require_session(session_id))
            entry.session.navigate(delta)
            return entry

    def go_to(self, session_id: str, index: int) -> SessionEntry:
        with self._lock:
            entry = self._refresh(self._require_session(session_id))
            entry.session.go_to(index)
            return entry

    def toggle_flag(self, session_id: str, question_id: str) -> SessionEntry:
        with self._lock:
            entry = self._refresh(self._require_session(session_id))
            entry.session.toggle_flag(question_id)
            return entry

    def submit_session(self, session_id: str) -> SessionEntry:
        with self._lock:
            entry = self._refresh(self._require_session(session_id))
            if entry.outcome is None:
                self._complete(entry, entry.session.submit())
            return entry

    def quit_session(self, session_id: str) -> None:
        with self._lock:
            entry = self._refresh(self._require_session(session_id))
            entry.session.quit()
            del self._sessions[session_id]

    # --- Submissions & history ---

    def submit_answers(
        self,
        user_id: str | None,
        definition: ExamDefinition,
        answers: Sequence[AnswerRecord],
        time_taken_seconds: int,
        exam_id: str | None = None,
        submission_id: str | None = None,
    ) -> SubmissionOutcome:
        """Score an attempt run by the client, then persist it for signed-in users."""
        result = score_attempt(
            definition,
            answers,
            exam_id=exam_id or self._new_exam_id(),
            time_taken_seconds=time_taken_seconds,
            created_at=self._clock(),
        )
        return self._persist(user_id, result, submission_id)

    def get_history(self, user_id: str) -> list[ExamResult]:
        return self._store.list_results(user_id)

    def get_history_overview(self, user_id: str) -> HistoryOverview:
        profile = self._store.get_user(user_id)
        results = self._store.list_results(user_id)
        return HistoryOverview(
            summary=summarize_history(results),
            trend=recent_trend(results, HistoryOrder.NEWEST_FIRST),
            streak=profile.streak,
        )

    def get_result(self, user_id: str, result_id: str) -> ExamResult:
        return self._store.get_result(user_id, result_id)

    def get_weak_areas(self, user_id: str) -> list[WeakArea]:
        return analyze_weak_areas(self._store.list_results(user_id), HistoryOrder.NEWEST_FIRST)

    def get_weak_area_drill(self, user_id: str) -> ExamDefinition:
        return build_drill_exam(self.get_weak_areas(user_id))

    # --- Bank & sharing ---

    def save_to_bank(self, owner_id: str, definition: ExamDefinition) -> SavedExam:
        return self._store.save_exam(owner_id, definition)

    def list_bank(self, owner_id: str) -> list[SavedExam]:
        return self._store.list_saved_exams(owner_id)

    def export_from_bank(
        self,
        owner_id: str,
        exam_id: str,
        as_text: bool = False,
    ) -> tuple[SavedExam, str | list[dict[str, Any]]]:
        """Return a bank entry with its questions in a re-importable form.

        The JSON form is the record list accepted on paste; the text form is the
        Q:/A:/CORRECT: block format.
        """
        saved = self._store.get_saved_exam(owner_id, exam_id)
        questions = list(saved.definition.questions)
        if as_text:
            return saved, serialize_question_blocks(questions)
        return saved, to_raw_records(questions)

    def delete_from_bank(self, owner_id: str, exam_id: str) -> None:
        self._store.delete_saved_exam(owner_id, exam_id)

    def share_exam(self, owner_id: str, definition: ExamDefinition) -> SavedExam:
        saved = self._store.save_exam(owner_id, definition, share=True)
        logger.info("Exam '%s' shared as %s", definition.title, saved.share_id)
        return saved

    def get_shared_exam(self, share_id: str) -> SavedExam:
        return self._store.get_shared_exam(share_id)

    def submit_shared_score(
        self,
        share_id: str,
        nickname: str | None,
        score: object,
        total: int,
        time_taken_seconds: int,
        percentage: float | None = None,
    ) -> tuple[list[LeaderboardEntry], int | None]:
        """Append a public score; return the capped ranking and the entry's rank."""
        entry = make_entry(
            nickname,
            score,
            total,
            time_taken_seconds,
            submitted_at=self._clock(),
            percentage=percentage,
        )
        stored = self._store.append_leaderboard_entry(share_id, entry)
        return rank_entries(stored), find_rank(stored, entry)

    def get_leaderboard(self, share_id: str) -> tuple[str, list[LeaderboardEntry]]:
        saved = self._store.get_shared_exam(share_id)
        return saved.definition.title, rank_entries(saved.leaderboard)

    # --- Internals ---

    def _refresh(self, entry: SessionEntry) -> SessionEntry:
        self._expire_if_due(entry)
        entry.last_active = self._clock()
        return entry

    def _expire_if_due(self, entry: SessionEntry) -> None:
        attempt = entry.session.check_timer()
        if attempt is not None:
            logger.info("Session %s ran out of time", entry.session_id)
            self._complete(entry, attempt)

    def _sweep_sessions(self) -> None:
        """Drop finished sessions past their grace period and long-idle ones.

        Timed sessions whose deadline passed unnoticed are completed first, so
        a signed-in user's attempt still lands in their history.
        """
        now = self._clock()
        completed_cutoff = now - timedelta(seconds=COMPLETED_SESSION_RETENTION_SECONDS)
        idle_cutoff = now - timedelta(seconds=IDLE_SESSION_RETENTION_SECONDS)
        for session_id, entry in list(self._sessions.items()):
            self._expire_if_due(entry)
            if entry.outcome is not None:
                last_seen = max(entry.last_active, entry.outcome.result.created_at)
                expired = last_seen < completed_cutoff
            else:
                expired = entry.last_active < idle_cutoff
            if expired:
                del self._sessions[session_id]
                logger.debug("Dropped session %s", session_id)

    def _complete(self, entry: SessionEntry, attempt: FinalizedAttempt) -> None:
        result = score_attempt(
            entry.session.definition,
            attempt.answers,
            exam_id=entry.exam_id,
            time_taken_seconds=attempt.time_taken_seconds,
            created_at=attempt.finished_at,
        )
        entry.outcome = self._persist(entry.owner_id, result, submission_id=entry.session_id)

    def _persist(self, user_id: str | None, result: ExamResult, submission_id: str | None) -> SubmissionOutcome:
        if user_id is None:
            return SubmissionOutcome(result=result, saved=False)
        try:
            stored, streak = self._store.record_submission(user_id, result, submission_id=submission_id)
        except PersistenceFailure as exc:
            logger.warning("Saving result %s for user %s failed: %s", result.id, user_id, exc)
            return SubmissionOutcome(result=result, saved=False, save_error=str(exc))
        logger.info("Recorded result %s for user %s (%s%%)", stored.id, user_id, stored.percentage)
        return SubmissionOutcome(result=stored, saved=True, streak=streak)

    def _require_session(self, session_id: str) -> SessionEntry:
        entry = self._sessions.get(session_id)
        if entry is None:
            raise NotFoundError("Exam session not found")
        return entry

    def _new_exam_id(self) -> str:
        return f"exam_{int(self._clock().timestamp() * 1000)}"
