from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.integration


def test_token_for_valid_credentials_grants_access(client: TestClient) -> None:
    response = client.post("/auth/token", json={"username": "u1", "password": "password1"})

    assert response.status_code == 200
    token = response.json()["token"]
    profile = client.get("/users/u1", headers={"authorization": f"Bearer {token}"})
    assert profile.status_code == 200


@pytest.mark.parametrize(
    "credentials",
    [
        {"username": "u1", "password": "wrong"},
        {"username": "nope", "password": "password1"},
    ],
)
def test_token_rejects_bad_credentials(client: TestClient, credentials: dict[str, str]) -> None:
    response = client.post("/auth/token", json=credentials)
    assert response.status_code == 401


def test_token_rejects_over_long_password(client: TestClient) -> None:
    response = client.post("/auth/token", json={"username": "u1", "password": "x" * 100})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid username/password"


def test_token_rejects_incomplete_payload(client: TestClient) -> None:
    assert client.post("/auth/token", json={"username": "u1"}).status_code == 400


def test_register_creates_non_admin_user(client: TestClient) -> None:
    response = client.post(
        "/auth/register",
        json={
            "username": "new",
            "firstName": "first",
            "lastName": "last",
            "password": "password",
            "email": "new@email.com",
        },
    )

    assert response.status_code == 201
    token = response.json()["token"]
    headers = {"authorization": f"Bearer {token}"}
    assert client.get("/users/new", headers=headers).json()["user"]["isAdmin"] is False
    assert client.get("/users", headers=headers).status_code == 403


def test_register_cannot_grant_admin(client: TestClient) -> None:
    response = client.post(
        "/auth/register",
        json={
            "username": "sneaky",
            "firstName": "first",
            "lastName": "last",
            "password": "password",
            "email": "sneaky@email.com",
            "isAdmin": True,
        },
    )
    assert response.status_code == 400


def test_register_rejects_duplicate_username(client: TestClient) -> None:
    response = client.post(
        "/auth/register",
        json={
            "username": "u1",
            "firstName": "first",
            "lastName": "last",
            "password": "password",
            "email": "dupe@email.com",
        },
    )
    assert response.status_code == 400
