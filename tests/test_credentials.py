from datetime import datetime, timedelta, timezone

import jwt
import pytest

from exam_app.core.credentials import CredentialService
from exam_app.core.errors import AuthenticationError, ValidationError
from exam_app.core.services.exam_store import ExamStore

SECRET = "test-secret-with-at-least-thirty-two-bytes"


@pytest.fixture
def service() -> CredentialService:
    return CredentialService(ExamStore(), secret=SECRET, bcrypt_rounds=4)


def test_register_then_login(service):
    profile, token = service.register(" Ada@Example.com ", "secret1", name=" Ada ")

    assert profile.email == "ada@example.com"
    assert profile.name == "Ada"
    assert service.authenticate(token) == profile.user_id

    logged_in, login_token = service.login("ADA@example.com", "secret1")
    assert logged_in.user_id == profile.user_id
    assert service.authenticate(login_token) == profile.user_id


def test_register_validation(service):
    with pytest.raises(ValidationError):
        service.register("not-an-email", "secret1")
    with pytest.raises(ValidationError):
        service.register("ada@example.com", "123")
    with pytest.raises(ValidationError):
        service.register("ada@example.com", "x" * 73)

    service.register("ada@example.com", "secret1")
    with pytest.raises(ValidationError, match="already registered"):
        service.register("ada@example.com", "secret2")


def test_wrong_password_and_unknown_email(service):
    service.register("ada@example.com", "secret1")

    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        service.login("ada@example.com", "wrong-password")
    with pytest.raises(AuthenticationError):
        service.login("bob@example.com", "secret1")


def test_tampered_and_expired_tokens(service):
    profile, token = service.register("ada@example.com", "secret1")

    with pytest.raises(AuthenticationError):
        service.authenticate(token + "x")

    forged = jwt.encode({"sub": profile.user_id}, "another-secret-with-thirty-two-bytes!", algorithm="HS256")
    with pytest.raises(AuthenticationError):
        service.authenticate(forged)

    expired = jwt.encode(
        {"sub": profile.user_id, "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        SECRET,
        algorithm="HS256",
    )
    with pytest.raises(AuthenticationError, match="Invalid or expired token"):
        service.authenticate(expired)


def test_token_for_unknown_user_is_rejected(service):
    token = jwt.encode({"sub": "ghost"}, SECRET, algorithm="HS256")

    with pytest.raises(AuthenticationError):
        service.authenticate(token)
