"""
auth/tokens.py -- Password hashing, session tokens, and credential verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id), role, iat and exp. Verification returns None on any
       failure -- the guard turns that into "unauthenticated".

  Passwords: bcrypt with a fresh salt per hash and BCRYPT_ROUNDS cost (>= 10).
       The _DUMMY_HASH constant enables timing equalization in
       authenticate_user() so response time does not reveal whether an email
       is registered.

  CPU: bcrypt is deliberately slow. Every hash/verify acquires a slot from
       _HASH_SLOTS so a login burst cannot occupy every worker thread.

  SECRET_KEY: sourced from core.config.get_settings(), which validates the
       key at startup (dev mode auto-generates, production requires one).

Layer rule: no imports from api/ or kb/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import Role, Session
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("knowledgebase.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

_HASH_SLOTS = threading.BoundedSemaphore(_settings.hash_concurrency)

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes. The user-create validator caps
    passwords at 72 bytes so nothing is silently ignored.
    """
    with _HASH_SLOTS:
        salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
        return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed or empty digest returns False instead of raising.
    """
    try:
        with _HASH_SLOTS:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


# Timing equalization dummy hash.
# Computed once at module load with the configured cost so an unknown email
# costs exactly as much bcrypt work as a wrong password.
_DUMMY_HASH: str = hash_password("knowledgebase_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: str,
    role: Role | str,
    expire_seconds: int = 0,
    issued_at: datetime | None = None,
) -> str:
    """Encode a signed session token.

    Args:
        user_id:        Opaque user id, stored as the sub claim.
        role:           Role snapshot at issuance time.
        expire_seconds: Lifetime in seconds. 0 (default) uses
                        Settings.token_expire_seconds.
        issued_at:      Issuance instant. Defaults to now; tests pass a past
                        instant to mint already-expired tokens.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    iat = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": Role(role).value,
        "iat": iat,
        "exp": iat + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> Session | None:
    """Verify a token and return its Session, or None on any failure.

    Bad signature, expiry, missing claims and unknown roles all yield None.
    Returning None (rather than raising) keeps business logic simple: an
    invalid token is an anonymous caller.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    try:
        return Session(
            user_id=str(payload["sub"]),
            role=Role(payload["role"]),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (KeyError, ValueError, TypeError):
        return None


def refresh_access_token(store: UserStore, session: Session) -> tuple[str, User] | None:
    """Re-sign a session using the user's current stored role.

    Returns (token, user), or None when the user no longer exists. This is the
    point where a role change made after login takes effect.
    """
    user = store.get_by_id(session.user_id)
    if user is None:
        return None
    if user.role != session.role:
        logger.info("Role for user %s changed from %s to %s at refresh", user.id, session.role.value, user.role.value)
    return create_access_token(user.id, user.role), user


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Verify an email/password login with timing equalization.

    Always runs bcrypt whether or not the email exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the token expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )
