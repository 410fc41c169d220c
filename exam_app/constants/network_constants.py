"""Network configuration constants for the exam service."""

import os

DEFAULT_HOST: str = os.environ.get("EXAM_APP_HOST", "0.0.0.0")
DEFAULT_PORT: int = int(os.environ.get("EXAM_APP_PORT", "8000"))
API_PREFIX: str = "/api"
