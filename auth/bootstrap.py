"""
auth/bootstrap.py -- Out-of-band creation of the first admin account.

Called from `python main.py create-admin` and from API startup when
ADMIN_EMAIL and ADMIN_PASSWORD are both set. Idempotent: an email that is
already registered is left untouched, whatever its role.
"""

from __future__ import annotations

import logging

from auth.models import Role, User
from auth.schemas import UserCreate
from auth.store import UserStore
from auth.tokens import hash_password
from core.errors import ConflictError
from core.validation import validate_payload

logger = logging.getLogger("knowledgebase.auth")


def ensure_admin(store: UserStore, email: str, password: str) -> tuple[User, bool]:
    """Create an ADMIN user unless the email already exists.

    Returns (user, created). Raises core.errors.ValidationError when email or
    password fail the user-create rules.
    """
    body = validate_payload(UserCreate, {"email": email, "password": password, "role": Role.ADMIN.value})

    existing = store.get_by_email(body.email)
    if existing is not None:
        if existing.role != Role.ADMIN:
            logger.warning("Bootstrap email %s exists with role %s; leaving it unchanged", body.email, existing.role.value)
        return existing, False

    try:
        user = store.create_user(User(email=body.email, hashed_password=hash_password(body.password), role=Role.ADMIN))
    except ConflictError:
        # A concurrent bootstrap won the insert race.
        existing = store.get_by_email(body.email)
        if existing is None:
            raise
        return existing, False
    logger.info("Admin user %s created", user.email)
    return user, True
