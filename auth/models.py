"""
auth/models.py -- Domain types for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in kb/models.py -- dataclasses own domain shape; stores and services do the
work.

Role is a closed enum. Every decision that depends on a role goes through
auth/guard.py, whose rank table covers each member.

Layer rule: no imports from api/ or kb/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass
class User:
    """A stored identity.

    email is the login name; the store keeps it stripped and lower-cased so
    two spellings of the same address cannot create two accounts.
    hashed_password is a bcrypt digest and is never serialized outward.
    """

    email: str
    hashed_password: str
    role: Role = Role.USER
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Session:
    """Decoded contents of a verified session token.

    Never persisted. role is the snapshot taken when the token was minted.
    """

    user_id: str
    role: Role
    issued_at: datetime
    expires_at: datetime
