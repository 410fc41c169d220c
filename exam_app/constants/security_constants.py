"""Credential and storage settings, overridable through the environment."""

import os

JWT_SECRET: str = os.environ.get("EXAM_APP_JWT_SECRET", "change-me-exam-app-development-secret")
JWT_ALGORITHM: str = "HS256"
TOKEN_TTL_DAYS: int = int(os.environ.get("EXAM_APP_TOKEN_TTL_DAYS", "7"))
PASSWORD_MIN_LENGTH: int = 6
BCRYPT_ROUNDS: int = 12
DATA_FILE: str | None = os.environ.get("EXAM_APP_DATA_FILE") or None
