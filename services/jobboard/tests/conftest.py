from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from jobboard.config import Settings
from jobboard.main import create_app
from jobboard.models import CompanyCreateRequest, JobCreateRequest, UserCreateRequest
from jobboard.repository import JobboardRepository
from jobboard.security import create_token

TEST_SECRET_KEY = "jobboard-test-secret"
TEST_SETTINGS = Settings(secret_key=TEST_SECRET_KEY, bcrypt_work_factor=4)


def seed(repository: JobboardRepository) -> None:
    for index in (1, 2, 3):
        repository.create_company(
            CompanyCreateRequest(
                handle=f"c{index}",
                name=f"C{index}",
                num_employees=index,
                description=f"Desc{index}",
                logo_url=f"http://c{index}.img",
            )
        )
    repository.create_job(JobCreateRequest(title="j1", salary=10000, equity=None, company_handle="c1"))
    repository.create_job(JobCreateRequest(title="j2", salary=50000, equity=None, company_handle="c2"))
    repository.create_job(JobCreateRequest(title="j3", salary=100000, equity=0.123, company_handle="c1"))
    for index in (1, 2, 3):
        repository.register(
            UserCreateRequest(
                username=f"u{index}",
                password=f"password{index}",
                first_name=f"U{index}F",
                last_name=f"U{index}L",
                email=f"user{index}@user.com",
                is_admin=False,
            )
        )
    repository.register(
        UserCreateRequest(
            username="admin",
            password="adminpass",
            first_name="adminFirst",
            last_name="adminLast",
            email="admin@user.com",
            is_admin=True,
        )
    )


def bearer(username: str, is_admin: bool = False) -> dict[str, str]:
    return {"authorization": f"Bearer {create_token(username, is_admin, TEST_SETTINGS)}"}


@pytest.fixture
def client(tmp_path: Path):
    app = create_app(
        database_path=str(tmp_path / "jobboard.sqlite3"),
        secret_key=TEST_SECRET_KEY,
        bcrypt_work_factor=4,
    )
    with TestClient(app) as test_client:
        seed(app.state.repository)
        yield test_client


@pytest.fixture
def u1_headers() -> dict[str, str]:
    return bearer("u1")


@pytest.fixture
def u3_headers() -> dict[str, str]:
    return bearer("u3")


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return bearer("admin", is_admin=True)
