"""Error taxonomy shared by the engines, the store and the HTTP layer."""

from __future__ import annotations


class ExamAppError(Exception):
    """Base class for errors reported to callers."""


class ValidationError(ExamAppError):
    """Raised when input (question sets, nicknames, scores) is malformed."""


class EmptyExamError(ExamAppError):
    """Raised when an exam has no questions to run or score."""


class NotFoundError(ExamAppError):
    """Raised for unknown share ids, result ids, sessions or users."""


class PersistenceFailure(ExamAppError):
    """Raised when the store could not complete an atomic write."""


class AuthenticationError(ExamAppError):
    """Raised for bad credentials or invalid tokens."""
