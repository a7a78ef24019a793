"""
auth/schemas.py -- Validators for login and user-management payloads.

Login has no password length floor: rejecting short passwords at login would
reveal the creation policy to a guessing attacker. Creation enforces 8 characters
minimum and bcrypt's 72-byte input ceiling.

Passwords are never stripped -- leading/trailing spaces are part of the secret.
"""

from __future__ import annotations

from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, model_validator

from auth.models import Role
from core.validation import Email

_MIN_PASSWORD_LENGTH = 8
_MAX_PASSWORD_BYTES = 72


def _new_password(value: str) -> str:
    if len(value) < _MIN_PASSWORD_LENGTH:
        raise ValueError(f"must be at least {_MIN_PASSWORD_LENGTH} characters long")
    if len(value.encode("utf-8")) > _MAX_PASSWORD_BYTES:
        raise ValueError(f"must be at most {_MAX_PASSWORD_BYTES} bytes")
    return value


def _present(value: str) -> str:
    if not value:
        raise ValueError("cannot be empty")
    return value


NewPassword = Annotated[str, AfterValidator(_new_password)]


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: Email
    password: Annotated[str, AfterValidator(_present)]


class RegisterRequest(BaseModel):
    """Self-registration. Always creates a USER; any role in the payload is ignored."""

    model_config = ConfigDict(extra="ignore")

    email: Email
    password: NewPassword


class UserCreate(RegisterRequest):
    """Admin-issued account creation (and the bootstrap admin)."""

    role: Role = Role.USER


class UserUpdate(BaseModel):
    """Admin role change and/or password rotation."""

    model_config = ConfigDict(extra="ignore")

    role: Optional[Role] = None
    password: Optional[NewPassword] = None

    @model_validator(mode="after")
    def require_change(self) -> "UserUpdate":
        if self.role is None and self.password is None:
            raise ValueError("At least one field must be provided for an update")
        return self
