from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass

DEFAULT_DB_PATH = os.path.join(tempfile.gettempdir(), "jobboard", "jobboard.sqlite3")
DEFAULT_SECRET_KEY = "secret-dev"
DEFAULT_BCRYPT_WORK_FACTOR = 12
MIN_BCRYPT_WORK_FACTOR = 4


@dataclass(frozen=True)
class Settings:
    database_path: str = DEFAULT_DB_PATH
    secret_key: str = DEFAULT_SECRET_KEY
    bcrypt_work_factor: int = DEFAULT_BCRYPT_WORK_FACTOR
    token_algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if not self.secret_key:
            raise ValueError("secret_key must be a non-empty string.")
        if self.bcrypt_work_factor < MIN_BCRYPT_WORK_FACTOR:
            raise ValueError(
                f"bcrypt_work_factor must be at least {MIN_BCRYPT_WORK_FACTOR}."
            )


def load_settings(
    *,
    database_path: str | None = None,
    secret_key: str | None = None,
    bcrypt_work_factor: int | None = None,
) -> Settings:
    """Resolve settings from explicit arguments, then the environment, then defaults."""
    resolved_work_factor = bcrypt_work_factor
    if resolved_work_factor is None:
        raw_work_factor = os.getenv("JOBBOARD_BCRYPT_WORK_FACTOR", "").strip()
        resolved_work_factor = (
            int(raw_work_factor) if raw_work_factor else DEFAULT_BCRYPT_WORK_FACTOR
        )
    return Settings(
        database_path=database_path or os.getenv("JOBBOARD_DB_PATH", DEFAULT_DB_PATH),
        secret_key=(secret_key or os.getenv("JOBBOARD_SECRET_KEY", "")).strip()
        or DEFAULT_SECRET_KEY,
        bcrypt_work_factor=resolved_work_factor,
    )
