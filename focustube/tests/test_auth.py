from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from conftest import JWT_SECRET, make_token
from focustube.core import auth
from focustube.core.config import settings
from focustube.core.errors import AuthenticationError, NotConfiguredError


@pytest.fixture(autouse=True)
def jwt_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "auth_jwt_secret", JWT_SECRET)
    monkeypatch.setattr(settings, "auth_jwt_audience", "authenticated")


def test_decode_access_token() -> None:
    claims = auth.decode_access_token(make_token("user-7"))
    assert claims["sub"] == "user-7"
    assert claims["email"] == "user-7@example.com"


def test_expired_token_is_rejected() -> None:
    with pytest.raises(AuthenticationError, match="Invalid or expired token"):
        auth.decode_access_token(make_token(expires_in=-10))


def test_wrong_secret_is_rejected() -> None:
    token = jwt.encode(
        {"sub": "user-1", "aud": "authenticated", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        "another-secret",
        algorithm="HS256",
    )
    with pytest.raises(AuthenticationError):
        auth.decode_access_token(token)


def test_audience_check_can_be_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    token = jwt.encode({"sub": "user-1", "aud": "other"}, JWT_SECRET, algorithm="HS256")
    with pytest.raises(AuthenticationError):
        auth.decode_access_token(token)

    monkeypatch.setattr(settings, "auth_jwt_audience", None)
    assert auth.decode_access_token(token)["sub"] == "user-1"


def test_missing_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "auth_jwt_secret", None)
    with pytest.raises(NotConfiguredError):
        auth.decode_access_token(make_token())
