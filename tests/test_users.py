# mypy: ignore-errors
"""Tests for user profile endpoints."""

from __future__ import annotations

from fastapi import status


def test_read_me(client, test_user, auth_token, post_factory) -> None:
    post_factory()
    post_factory(published=False)

    response = client.get("/api/v1/users/me", headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["id"] == test_user.id
    assert data["username"] == "alice"
    assert data["role"] == "member"
    # Drafts are not part of the public count.
    assert data["postCount"] == 1


def test_read_me_requires_token(client) -> None:
    response = client.get("/api/v1/users/me")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.headers["www-authenticate"] == "Bearer"


def test_token_for_deleted_user_is_rejected(client, db_session, other_user, other_auth_token) -> None:
    db_session.delete(other_user)
    db_session.commit()
    response = client.get("/api/v1/users/me", headers=other_auth_token)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Could not validate credentials"


def test_read_public_profile(client, admin_user) -> None:
    response = client.get(f"/api/v1/users/{admin_user.id}")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["role"] == "admin"
    assert response.json()["postCount"] == 0


def test_missing_user(client) -> None:
    response = client.get("/api/v1/users/999")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "User not found"
