"""
auth/guard.py -- Access control decisions.

authorize() is a pure function of (session, required role): no store access,
no I/O, same inputs always give the same Decision. enforce() is the raising
wrapper services and dependencies use.

Role ranking is a closed table over every Role member; a role satisfies any
requirement ranked at or below it, so ADMIN passes a USER requirement.

Layer rule: no imports from api/ or kb/.
"""

from __future__ import annotations

from dataclasses import dataclass

from auth.models import Role, Session
from core.errors import AuthenticationError, AuthorizationError

UNAUTHENTICATED = "unauthenticated"
FORBIDDEN = "forbidden"

_ROLE_RANK: dict[Role, int] = {
    Role.USER: 0,
    Role.ADMIN: 1,
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None


ALLOW = Decision(allowed=True)


def authorize(session: Session | None, required_role: Role | None) -> Decision:
    """Decide whether a caller may perform an operation.

    required_role None   -> public operation, always allowed.
    no session           -> deny("unauthenticated").
    role ranked too low  -> deny("forbidden").
    """
    if required_role is None:
        return ALLOW
    if session is None:
        return Decision(allowed=False, reason=UNAUTHENTICATED)
    if _ROLE_RANK[session.role] < _ROLE_RANK[required_role]:
        return Decision(allowed=False, reason=FORBIDDEN)
    return ALLOW


def enforce(session: Session | None, required_role: Role | None) -> None:
    """Raise AuthenticationError / AuthorizationError when authorize() denies."""
    decision = authorize(session, required_role)
    if decision.allowed:
        return
    if decision.reason == UNAUTHENTICATED:
        raise AuthenticationError()
    raise AuthorizationError(f"{required_role.value.capitalize()} access required.")
