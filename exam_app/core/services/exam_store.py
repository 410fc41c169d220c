"""Document store for users, results, the exam bank and shared exams."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from threading import Lock
from uuid import uuid4

import pydantic
from pydantic import TypeAdapter

from exam_app.constants.exam_constants import SHARE_ID_LENGTH
from exam_app.core.errors import NotFoundError, PersistenceFailure, ValidationError
from exam_app.core.models import (
    ExamDefinition,
    ExamResult,
    LeaderboardEntry,
    SavedExam,
    StreakState,
    UserAccount,
    UserProfile,
)
from exam_app.core.services.streak import update_streak

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StoreState:
    """Everything the store holds. Values are immutable records; only the containers change."""

    users: dict[str, UserAccount] = field(default_factory=dict)
    saved_exams: dict[str, SavedExam] = field(default_factory=dict)
    shares: dict[str, str] = field(default_factory=dict)
    submissions: dict[str, str] = field(default_factory=dict)

    def copy(self) -> StoreState:
        return StoreState(
            users=dict(self.users),
            saved_exams=dict(self.saved_exams),
            shares=dict(self.shares),
            submissions=dict(self.submissions),
        )


_STATE_ADAPTER = TypeAdapter(StoreState)


class ExamStore:
    """Stores records in memory, optionally mirrored to a JSON file.

    Every write runs as one unit of work under a lock. If the unit fails,
    including when the snapshot cannot be written, the in-memory state is
    rolled back so readers never observe half of a submission.
    """

    def __init__(self, data_path: Path | None = None, clock: Callable[[], datetime] = datetime.now) -> None:
        self._lock = Lock()
        self._clock = clock
        self._data_path = data_path
        self._state = self._load(data_path) if data_path is not None else StoreState()

    # --- Users ---

    def create_user(self, email: str, password_hash: str, name: str | None = None) -> UserProfile:
        with self._transaction() as state:
            if self._find_account(state, email) is not None:
                raise ValidationError("Email already registered")
            profile = UserProfile(user_id=uuid4().hex, email=email, name=name, created_at=self._clock())
            state.users[profile.user_id] = UserAccount(profile=profile, password_hash=password_hash)
            return profile

    def find_user_by_email(self, email: str) -> UserAccount | None:
        with self._lock:
            return self._find_account(self._state, email)

    def get_user(self, user_id: str) -> UserProfile:
        with self._lock:
            return self._require_account(self._state, user_id).profile

    # --- Results ---

    def record_submission(
        self,
        user_id: str,
        result: ExamResult,
        submission_id: str | None = None,
    ) -> tuple[ExamResult, StreakState]:
        """Append a result and update the streak as a single unit of work.

        A repeated ``submission_id`` for the same user (e.g. a retried request)
        returns the stored result and leaves history and streak untouched.
        """
        with self._transaction() as state:
            account = self._require_account(state, user_id)
            profile = account.profile

            submission_key = f"{user_id}:{submission_id}" if submission_id else None
            if submission_key and submission_key in state.submissions:
                stored_id = state.submissions[submission_key]
                stored = next(r for r in profile.exam_history if r.id == stored_id)
                return stored, profile.streak

            streak = update_streak(profile.streak, result.created_at)
            profile = replace(profile, exam_history=(*profile.exam_history, result), streak=streak)
            state.users[user_id] = replace(account, profile=profile)
            if submission_key:
                state.submissions[submission_key] = result.id
            return result, streak

    def list_results(self, user_id: str) -> list[ExamResult]:
        """Results of a user, newest first."""
        profile = self.get_user(user_id)
        return sorted(profile.exam_history, key=lambda r: r.created_at, reverse=True)

    def get_result(self, user_id: str, result_id: str) -> ExamResult:
        profile = self.get_user(user_id)
        for result in profile.exam_history:
            if result.id == result_id:
                return result
        raise NotFoundError("Exam result not found")

    # --- Exam bank & sharing ---

    def save_exam(self, owner_id: str | None, definition: ExamDefinition, share: bool = False) -> SavedExam:
        with self._transaction() as state:
            if owner_id is not None:
                self._require_account(state, owner_id)
            share_id = self._new_share_id(state) if share else None
            saved = SavedExam(
                id=uuid4().hex,
                owner_id=owner_id,
                definition=definition,
                created_at=self._clock(),
                share_id=share_id,
                is_public=share,
            )
            state.saved_exams[saved.id] = saved
            if share_id:
                state.shares[share_id] = saved.id
            return saved

    def list_saved_exams(self, owner_id: str) -> list[SavedExam]:
        """Bank entries of a user, newest first."""
        with self._lock:
            owned = [exam for exam in self._state.saved_exams.values() if exam.owner_id == owner_id]
        return sorted(owned, key=lambda exam: exam.created_at, reverse=True)

    def get_saved_exam(self, owner_id: str, exam_id: str) -> SavedExam:
        with self._lock:
            exam = self._state.saved_exams.get(exam_id)
        if exam is None or exam.owner_id != owner_id:
            raise NotFoundError("Exam not found")
        return exam

    def delete_saved_exam(self, owner_id: str, exam_id: str) -> None:
        with self._transaction() as state:
            exam = state.saved_exams.get(exam_id)
            if exam is None or exam.owner_id != owner_id:
                raise NotFoundError("Exam not found")
            del state.saved_exams[exam_id]
            if exam.share_id:
                state.shares.pop(exam.share_id, None)

    def get_shared_exam(self, share_id: str) -> SavedExam:
        with self._lock:
            return self._require_shared(self._state, share_id)

    def append_leaderboard_entry(self, share_id: str, entry: LeaderboardEntry) -> tuple[LeaderboardEntry, ...]:
        """Append to a shared exam's leaderboard and return the full stored list."""
        with self._transaction() as state:
            exam = self._require_shared(state, share_id)
            updated = replace(exam, leaderboard=(*exam.leaderboard, entry))
            state.saved_exams[exam.id] = updated
            return updated.leaderboard

    # --- Internals ---

    @contextmanager
    def _transaction(self) -> Iterator[StoreState]:
        with self._lock:
            working = self._state.copy()
            yield working
            self._persist(working)
            self._state = working

    def _persist(self, state: StoreState) -> None:
        if self._data_path is None:
            return
        temp_path = self._data_path.with_name(self._data_path.name + ".tmp")
        try:
            self._data_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(_STATE_ADAPTER.dump_json(state, indent=2))
            temp_path.replace(self._data_path)
        except OSError as exc:
            logger.error("Could not write store snapshot to %s: %s", self._data_path, exc)
            raise PersistenceFailure("Could not save data") from exc

    @staticmethod
    def _load(data_path: Path) -> StoreState:
        if not data_path.exists():
            return StoreState()
        try:
            return _STATE_ADAPTER.validate_json(data_path.read_bytes())
        except OSError as exc:
            raise PersistenceFailure(f"Could not read {data_path}") from exc
        except pydantic.ValidationError as exc:
            logger.error("Store snapshot %s is not valid: %s", data_path, exc)
            raise PersistenceFailure(f"Could not load {data_path}: invalid snapshot") from exc

    @staticmethod
    def _find_account(state: StoreState, email: str) -> UserAccount | None:
        return next((a for a in state.users.values() if a.profile.email == email), None)

    @staticmethod
    def _require_account(state: StoreState, user_id: str) -> UserAccount:
        account = state.users.get(user_id)
        if account is None:
            raise NotFoundError("User not found")
        return account

    @staticmethod
    def _require_shared(state: StoreState, share_id: str) -> SavedExam:
        exam_id = state.shares.get(share_id)
        exam = state.saved_exams.get(exam_id) if exam_id else None
        if exam is None or not exam.is_public:
            raise NotFoundError("Shared exam not found")
        return exam

    @staticmethod
    def _new_share_id(state: StoreState) -> str:
        while True:
            share_id = uuid4().hex[:SHARE_ID_LENGTH]
            if share_id not in state.shares:
                return share_id
