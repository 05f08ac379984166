from __future__ import annotations

import json
import logging
from typing import Any

import bcrypt
import jwt

from jobboard.config import Settings
from jobboard.guards import ANONYMOUS, Actor

LOGGER = logging.getLogger("jobboard.security")


def create_token(username: str, is_admin: bool, settings: Settings) -> str:
    payload = {"username": username, "isAdmin": bool(is_admin)}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.token_algorithm)


def extract_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, credentials = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip() or None


def decode_actor(authorization: str | None, settings: Settings) -> Actor:
    """Return the actor named by a bearer token, or ``ANONYMOUS``.

    A missing, malformed or badly signed token is not an error here; endpoints
    that need an identity reject the anonymous actor through their guards.
    """
    token = extract_bearer(authorization)
    if token is None:
        return ANONYMOUS
    try:
        claims: dict[str, Any] = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.token_algorithm],
        )
    except jwt.PyJWTError as exc:
        LOGGER.debug(json.dumps({"event": "token_rejected", "error": str(exc)}))
        return ANONYMOUS

    username = claims.get("username")
    if not isinstance(username, str) or not username:
        LOGGER.debug(json.dumps({"event": "token_rejected", "error": "missing username"}))
        return ANONYMOUS
    return Actor(username=username, is_admin=claims.get("isAdmin") is True)


def hash_password(password: str, settings: Settings) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_work_factor)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # bcrypt rejects secrets over 72 bytes; no stored hash can match one.
        return False
