"""Composable request authorization.

Each policy is a pure function of the request actor and the username that owns
the targeted resource, returning a ``Decision``. A ``GuardChain`` evaluates its
policies in declared order and stops at the first one that does not allow.
Turning a denial into an HTTP response is left to the caller.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class Decision(str, Enum):
    ALLOW = "allow"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Actor:
    username: str | None = None
    is_admin: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.username is not None

    @property
    def has_admin_rights(self) -> bool:
        return self.is_authenticated and self.is_admin


ANONYMOUS = Actor()

Policy = Callable[[Actor, str | None], Decision]


def require_authenticated(actor: Actor, owner: str | None = None) -> Decision:
    if not actor.is_authenticated:
        return Decision.UNAUTHENTICATED
    return Decision.ALLOW


def require_admin(actor: Actor, owner: str | None = None) -> Decision:
    if not actor.is_authenticated:
        return Decision.UNAUTHENTICATED
    if not actor.is_admin:
        return Decision.FORBIDDEN
    return Decision.ALLOW


def require_owner_or_admin(actor: Actor, owner: str | None = None) -> Decision:
    # Admin check comes first: admins may act on any user's resources.
    if actor.has_admin_rights:
        return Decision.ALLOW
    if actor.is_authenticated and owner is not None and actor.username == owner:
        return Decision.ALLOW
    return Decision.FORBIDDEN


@dataclass(frozen=True)
class GuardChain:
    policies: tuple[Policy, ...] = ()

    @classmethod
    def of(cls, *policies: Policy) -> GuardChain:
        return cls(policies=tuple(policies))

    def evaluate(self, actor: Actor, owner: str | None = None) -> Decision:
        for policy in self.policies:
            decision = policy(actor, owner)
            if decision is not Decision.ALLOW:
                return decision
        return Decision.ALLOW


PUBLIC = GuardChain.of()
LOGGED_IN = GuardChain.of(require_authenticated)
ADMIN_ONLY = GuardChain.of(require_authenticated, require_admin)
OWNER_OR_ADMIN = GuardChain.of(require_authenticated, require_owner_or_admin)
