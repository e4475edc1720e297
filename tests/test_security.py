# mypy: ignore-errors
"""Tests for JWT helpers."""

from __future__ import annotations

import pytest
from jose import jwt

from techblog.core.security import JWTError, create_access_token, decode_access_token
from techblog.core.settings import settings


def test_round_trip_subject() -> None:
    assert decode_access_token(create_access_token(42)) == 42


def test_wrong_secret_is_rejected() -> None:
    token = jwt.encode({"sub": "1"}, "another-secret", algorithm=settings.jwt_algorithm)
    with pytest.raises(JWTError):
        decode_access_token(token)


@pytest.mark.parametrize("claims", [{}, {"sub": "not-a-number"}])
def test_unusable_subject(claims) -> None:
    token = jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)
    with pytest.raises(JWTError):
        decode_access_token(token)
