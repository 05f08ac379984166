from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from jobboard.main import create_app
from jobboard.models import UserCreateRequest

pytestmark = [pytest.mark.integration, pytest.mark.smoke]


@pytest.fixture
def client(tmp_path: Path):
    app = create_app(
        database_path=str(tmp_path / "jobboard.sqlite3"),
        secret_key="smoke-secret",
        bcrypt_work_factor=4,
    )
    with TestClient(app) as test_client:
        app.state.repository.register(
            UserCreateRequest(
                username="admin",
                password="adminpass",
                first_name="Ada",
                last_name="Admin",
                email="admin@user.com",
                is_admin=True,
            )
        )
        yield test_client


def _login(client: TestClient, username: str, password: str) -> dict[str, str]:
    response = client.post("/auth/token", json={"username": username, "password": password})
    assert response.status_code == 200
    return {"authorization": f"Bearer {response.json()['token']}"}


def test_smoke_admin_posts_job_and_user_applies(client: TestClient) -> None:
    admin = _login(client, "admin", "adminpass")

    company = client.post(
        "/companies",
        json={"handle": "acme", "name": "Acme", "description": "Widgets", "numEmployees": 40},
        headers=admin,
    )
    job = client.post(
        "/jobs",
        json={"title": "Backend Engineer", "salary": 120000, "equity": 0.01, "companyHandle": "acme"},
        headers=admin,
    )
    assert company.status_code == 201
    assert job.status_code == 201
    job_id = job.json()["job"]["id"]

    registered = client.post(
        "/auth/register",
        json={
            "username": "casey",
            "password": "hunter22",
            "firstName": "Casey",
            "lastName": "Jones",
            "email": "casey@mail.com",
        },
    )
    assert registered.status_code == 201
    casey = {"authorization": f"Bearer {registered.json()['token']}"}

    search = client.get("/jobs", params={"title": "backend", "minSalary": "100000", "hasEquity": "true"})
    assert [found["id"] for found in search.json()["jobs"]] == [job_id]

    applied = client.post(f"/users/casey/jobs/{job_id}", headers=casey)
    assert applied.status_code == 201

    profile = client.get("/users/casey", headers=admin)
    assert profile.status_code == 200
    assert [entry["jobId"] for entry in profile.json()["user"]["jobs"]] == [job_id]

    assert client.get("/users/admin", headers=casey).status_code == 403
    assert client.patch(f"/jobs/{job_id}", json={"salary": 1}, headers=casey).status_code == 403
