from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from common.utils import now_utc_iso

from jobboard.config import Settings
from jobboard.errors import InvalidInputError
from jobboard.models import (
    AppliedJob,
    Company,
    CompanyCreateRequest,
    CompanyDetail,
    Job,
    JobCreateRequest,
    JobSummary,
    User,
    UserCreateRequest,
    UserDetail,
    UserRegisterRequest,
)
from jobboard.security import hash_password, verify_password
from jobboard.sql import (
    SQLITE,
    CompanyFilters,
    JobFilters,
    sql_for_company_filters,
    sql_for_job_filters,
    sql_for_partial_update,
    where_clause,
)

LOGGER = logging.getLogger("jobboard.repository")

COMPANY_COLUMNS = {"numEmployees": "num_employees", "logoUrl": "logo_url"}
JOB_COLUMNS: dict[str, str] = {}
USER_COLUMNS = {"firstName": "first_name", "lastName": "last_name"}
JOB_IMMUTABLE_FIELDS = frozenset({"id", "companyHandle", "company_handle"})


class JobboardRepository:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.database_path = Path(settings.database_path)
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise RuntimeError("Database connection is not initialized")
        return self._connection

    def connect(self) -> None:
        with self._lock:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.database_path, check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys=ON")
            self._connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS companies (
                    handle TEXT PRIMARY KEY CHECK (handle = lower(handle)),
                    name TEXT UNIQUE NOT NULL,
                    num_employees INTEGER CHECK (num_employees >= 0),
                    description TEXT NOT NULL,
                    logo_url TEXT
                );

                CREATE TABLE IF NOT EXISTS jobs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    salary INTEGER CHECK (salary >= 0),
                    equity REAL CHECK (equity <= 1.0),
                    company_handle TEXT NOT NULL
                        REFERENCES companies(handle) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS users (
                    username TEXT PRIMARY KEY,
                    password TEXT NOT NULL,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    email TEXT NOT NULL CHECK (instr(email, '@') > 1),
                    is_admin INTEGER NOT NULL DEFAULT 0
                );

                CREATE TABLE IF NOT EXISTS applications (
                    username TEXT NOT NULL
                        REFERENCES users(username) ON DELETE CASCADE,
                    job_id INTEGER NOT NULL
                        REFERENCES jobs(id) ON DELETE CASCADE,
                    applied_at TEXT NOT NULL,
                    PRIMARY KEY (username, job_id)
                );
                """
            )
            self._connection.commit()
        LOGGER.info(json.dumps({"event": "database_ready", "path": str(self.database_path)}))

    def close(self) -> None:
        with self._lock:
            if self._connection is None:
                return
            self._connection.close()
            self._connection = None

    def _apply_update(self, statement: str, params: tuple[Any, ...]) -> int:
        try:
            cursor = self.connection.execute(statement, params)
        except sqlite3.IntegrityError as exc:
            self.connection.rollback()
            raise InvalidInputError(str(exc)) from exc
        self.connection.commit()
        return cursor.rowcount

    # Companies

    def create_company(self, payload: CompanyCreateRequest) -> Company:
        with self._lock:
            duplicate = self.connection.execute(
                "SELECT handle FROM companies WHERE handle = ?",
                (payload.handle,),
            ).fetchone()
            if duplicate is not None:
                raise InvalidInputError(f"Duplicate company: {payload.handle}")
            self._apply_update(
                """
                INSERT INTO companies (handle, name, description, num_employees, logo_url)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    payload.handle,
                    payload.name,
                    payload.description,
                    payload.num_employees,
                    payload.logo_url,
                ),
            )
            return self._get_company_row_or_raise(payload.handle)

    def list_companies(self, filters: CompanyFilters) -> list[Company]:
        clause = sql_for_company_filters(filters, dialect=SQLITE)
        with self._lock:
            cursor = self.connection.execute(
                f"""
                SELECT handle, name, description, num_employees, logo_url
                FROM companies
                {where_clause(clause)}
                ORDER BY name
                """,
                clause.params,
            )
            return [self._to_company(row) for row in cursor.fetchall()]

    def get_company(self, handle: str) -> CompanyDetail | None:
        with self._lock:
            row = self._get_company_row(handle)
            if row is None:
                return None
            job_rows = self.connection.execute(
                """
                SELECT id, title, salary, equity
                FROM jobs
                WHERE company_handle = ?
                ORDER BY id
                """,
                (handle,),
            ).fetchall()
            return CompanyDetail(
                **self._to_company(row).model_dump(),
                jobs=[
                    JobSummary(
                        id=job["id"],
                        title=job["title"],
                        salary=job["salary"],
                        equity=job["equity"],
                    )
                    for job in job_rows
                ],
            )

    def update_company(self, handle: str, data: Mapping[str, Any]) -> Company | None:
        clause = sql_for_partial_update(data, COMPANY_COLUMNS, dialect=SQLITE)
        with self._lock:
            updated = self._apply_update(
                f"UPDATE companies SET {clause.sql} "
                f"WHERE handle = {SQLITE.placeholder(clause.next_position)}",
                (*clause.params, handle),
            )
            if not updated:
                return None
            return self._get_company_row_or_raise(handle)

    def delete_company(self, handle: str) -> bool:
        with self._lock:
            return self._apply_update("DELETE FROM companies WHERE handle = ?", (handle,)) > 0

    def _get_company_row(self, handle: str) -> sqlite3.Row | None:
        return self.connection.execute(
            """
            SELECT handle, name, description, num_employees, logo_url
            FROM companies
            WHERE handle = ?
            """,
            (handle,),
        ).fetchone()

    def _get_company_row_or_raise(self, handle: str) -> Company:
        row = self._get_company_row(handle)
        if row is None:
            raise KeyError(f"Unknown company: {handle}")
        return self._to_company(row)

    # Jobs

    def create_job(self, payload: JobCreateRequest) -> Job:
        with self._lock:
            company = self._get_company_row(payload.company_handle)
            if company is None:
                raise InvalidInputError(f"Unknown company: {payload.company_handle}")
            duplicate = self.connection.execute(
                "SELECT id FROM jobs WHERE title = ? AND company_handle = ?",
                (payload.title, payload.company_handle),
            ).fetchone()
            if duplicate is not None:
                raise InvalidInputError(
                    f"Duplicate job title: {payload.title} for company: {payload.company_handle}"
                )
            try:
                cursor = self.connection.execute(
                    """
                    INSERT INTO jobs (title, salary, equity, company_handle)
                    VALUES (?, ?, ?, ?)
                    """,
                    (payload.title, payload.salary, payload.equity, payload.company_handle),
                )
            except sqlite3.IntegrityError as exc:
                self.connection.rollback()
                raise InvalidInputError(str(exc)) from exc
            self.connection.commit()
            job = self.get_job(int(cursor.lastrowid))
            if job is None:
                raise KeyError(f"Unknown job id: {cursor.lastrowid}")
            return job

    def list_jobs(self, filters: JobFilters) -> list[Job]:
        clause = sql_for_job_filters(filters, dialect=SQLITE)
        with self._lock:
            cursor = self.connection.execute(
                f"""
                SELECT id, title, salary, equity, company_handle
                FROM jobs
                {where_clause(clause)}
                ORDER BY title, id
                """,
                clause.params,
            )
            return [self._to_job(row) for row in cursor.fetchall()]

    def get_job(self, job_id: int) -> Job | None:
        with self._lock:
            row = self.connection.execute(
                """
                SELECT id, title, salary, equity, company_handle
                FROM jobs
                WHERE id = ?
                """,
                (job_id,),
            ).fetchone()
            if row is None:
                return None
            return self._to_job(row)

    def update_job(self, job_id: int, data: Mapping[str, Any]) -> Job | None:
        immutable = sorted(JOB_IMMUTABLE_FIELDS.intersection(data))
        if immutable:
            raise InvalidInputError(f"Updating {', '.join(immutable)} is not allowed")
        clause = sql_for_partial_update(data, JOB_COLUMNS, dialect=SQLITE)
        with self._lock:
            updated = self._apply_update(
                f"UPDATE jobs SET {clause.sql} "
                f"WHERE id = {SQLITE.placeholder(clause.next_position)}",
                (*clause.params, job_id),
            )
            if not updated:
                return None
            return self.get_job(job_id)

    def delete_job(self, job_id: int) -> bool:
        with self._lock:
            return self._apply_update("DELETE FROM jobs WHERE id = ?", (job_id,)) > 0

    # Users

    def authenticate(self, username: str, password: str) -> User | None:
        with self._lock:
            row = self.connection.execute(
                """
                SELECT username, password, first_name, last_name, email, is_admin
                FROM users
                WHERE username = ?
                """,
                (username,),
            ).fetchone()
        if row is None or not verify_password(password, row["password"]):
            return None
        return self._to_user(row)

    def register(self, payload: UserRegisterRequest) -> User:
        is_admin = payload.is_admin if isinstance(payload, UserCreateRequest) else False
        hashed_password = hash_password(payload.password, self.settings)
        with self._lock:
            duplicate = self.connection.execute(
                "SELECT username FROM users WHERE username = ?",
                (payload.username,),
            ).fetchone()
            if duplicate is not None:
                raise InvalidInputError(f"Duplicate username: {payload.username}")
            self._apply_update(
                """
                INSERT INTO users (username, password, first_name, last_name, email, is_admin)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    payload.username,
                    hashed_password,
                    payload.first_name,
                    payload.last_name,
                    str(payload.email),
                    int(is_admin),
                ),
            )
            return self._get_user_or_raise(payload.username)

    def list_users(self) -> list[User]:
        with self._lock:
            cursor = self.connection.execute(
                """
                SELECT username, first_name, last_name, email, is_admin
                FROM users
                ORDER BY username
                """
            )
            return [self._to_user(row) for row in cursor.fetchall()]

    def get_user(self, username: str) -> UserDetail | None:
        with self._lock:
            row = self._get_user_row(username)
            if row is None:
                return None
            application_rows = self.connection.execute(
                """
                SELECT a.job_id, a.applied_at, j.title, j.salary, j.equity, j.company_handle
                FROM applications AS a
                JOIN jobs AS j ON a.job_id = j.id
                WHERE a.username = ?
                ORDER BY j.title
                """,
                (username,),
            ).fetchall()
            return UserDetail(
                **self._to_user(row).model_dump(),
                jobs=[
                    AppliedJob(
                        job_id=application["job_id"],
                        title=application["title"],
                        salary=application["salary"],
                        equity=application["equity"],
                        company_handle=application["company_handle"],
                        applied_at=application["applied_at"],
                    )
                    for application in application_rows
                ],
            )

    def update_user(self, username: str, data: Mapping[str, Any]) -> User | None:
        changes = dict(data)
        if changes.get("password"):
            changes["password"] = hash_password(changes["password"], self.settings)
        clause = sql_for_partial_update(changes, USER_COLUMNS, dialect=SQLITE)
        with self._lock:
            updated = self._apply_update(
                f"UPDATE users SET {clause.sql} "
                f"WHERE username = {SQLITE.placeholder(clause.next_position)}",
                (*clause.params, username),
            )
            if not updated:
                return None
            return self._get_user_or_raise(username)

    def delete_user(self, username: str) -> bool:
        with self._lock:
            return self._apply_update("DELETE FROM users WHERE username = ?", (username,)) > 0

    def apply_to_job(self, username: str, job_id: int) -> int | None:
        """Record an application; returns ``None`` when the user does not exist."""
        with self._lock:
            if self._get_user_row(username) is None:
                return None
            if self.get_job(job_id) is None:
                raise InvalidInputError(f"Job id of {job_id} does not exist.")
            existing = self.connection.execute(
                "SELECT job_id FROM applications WHERE username = ? AND job_id = ?",
                (username, job_id),
            ).fetchone()
            if existing is not None:
                raise InvalidInputError(f"{username} has already applied for this job.")
            self._apply_update(
                "INSERT INTO applications (username, job_id, applied_at) VALUES (?, ?, ?)",
                (username, job_id, now_utc_iso()),
            )
            return job_id

    def _get_user_row(self, username: str) -> sqlite3.Row | None:
        return self.connection.execute(
            """
            SELECT username, first_name, last_name, email, is_admin
            FROM users
            WHERE username = ?
            """,
            (username,),
        ).fetchone()

    def _get_user_or_raise(self, username: str) -> User:
        row = self._get_user_row(username)
        if row is None:
            raise KeyError(f"Unknown username: {username}")
        return self._to_user(row)

    def _to_company(self, row: sqlite3.Row) -> Company:
        return Company(
            handle=row["handle"],
            name=row["name"],
            description=row["description"],
            num_employees=row["num_employees"],
            logo_url=row["logo_url"],
        )

    def _to_job(self, row: sqlite3.Row) -> Job:
        return Job(
            id=row["id"],
            title=row["title"],
            salary=row["salary"],
            equity=row["equity"],
            company_handle=row["company_handle"],
        )

    def _to_user(self, row: sqlite3.Row) -> User:
        return User(
            username=row["username"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            is_admin=bool(row["is_admin"]),
        )
