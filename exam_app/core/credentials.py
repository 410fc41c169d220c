"""Password hashing and bearer tokens for signed-in users."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from exam_app.constants.security_constants import (
    BCRYPT_ROUNDS,
    JWT_ALGORITHM,
    PASSWORD_MIN_LENGTH,
    TOKEN_TTL_DAYS,
)
from exam_app.core.errors import AuthenticationError, NotFoundError, ValidationError
from exam_app.core.models import UserProfile
from exam_app.core.services.exam_store import ExamStore

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
# bcrypt only looks at the first 72 bytes and newer releases reject longer input.
_BCRYPT_MAX_BYTES = 72


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CredentialService:
    """Registers users, checks passwords and issues/verifies JWTs."""

    def __init__(
        self,
        store: ExamStore,
        secret: str,
        algorithm: str = JWT_ALGORITHM,
        token_ttl: timedelta = timedelta(days=TOKEN_TTL_DAYS),
        bcrypt_rounds: int = BCRYPT_ROUNDS,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if not secret:
            raise ValueError("A token secret is required.")
        self._store = store
        self._secret = secret
        self._algorithm = algorithm
        self._token_ttl = token_ttl
        self._bcrypt_rounds = bcrypt_rounds
        self._clock = clock

    def register(self, email: str, password: str, name: str | None = None) -> tuple[UserProfile, str]:
        normalized_email = self._normalize_email(email)
        if len(password or "") < PASSWORD_MIN_LENGTH:
            raise ValidationError(f"password must be at least {PASSWORD_MIN_LENGTH} characters long")
        encoded = password.encode("utf-8")
        if len(encoded) > _BCRYPT_MAX_BYTES:
            raise ValidationError(f"password must be at most {_BCRYPT_MAX_BYTES} bytes long")
        password_hash = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._bcrypt_rounds))
        profile = self._store.create_user(
            normalized_email,
            password_hash.decode("utf-8"),
            name=(name or "").strip() or None,
        )
        return profile, self.issue_token(profile)

    def login(self, email: str, password: str) -> tuple[UserProfile, str]:
        account = self._store.find_user_by_email(self._normalize_email(email))
        encoded = (password or "").encode("utf-8")
        if (
            account is None
            or len(encoded) > _BCRYPT_MAX_BYTES
            or not bcrypt.checkpw(encoded, account.password_hash.encode("utf-8"))
        ):
            raise AuthenticationError("Invalid email or password")
        return account.profile, self.issue_token(account.profile)

    def issue_token(self, profile: UserProfile) -> str:
        issued_at = self._clock()
        payload = {
            "sub": profile.user_id,
            "email": profile.email,
            "iat": issued_at,
            "exp": issued_at + self._token_ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def authenticate(self, token: str) -> str:
        """Return the user id carried by a valid token."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as exc:
            raise AuthenticationError("Invalid or expired token") from exc
        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Invalid or expired token")
        try:
            self._store.get_user(user_id)
        except NotFoundError as exc:
            raise AuthenticationError("Invalid or expired token") from exc
        return user_id

    @staticmethod
    def _normalize_email(email: str) -> str:
        normalized = (email or "").strip().lower()
        if not _EMAIL_PATTERN.match(normalized):
            raise ValidationError("email must be a valid email")
        return normalized
