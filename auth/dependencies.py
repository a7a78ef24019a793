"""
auth/dependencies.py -- FastAPI Depends() helpers for sessions.

Two token transports are checked in priority order:
  1. JWT cookie ("access_token") -- set by POST /auth/login.
  2. Authorization: Bearer <token> header -- API clients.

try_get_session() is the soft variant (returns None on failure); public routes
and the kb services take its result and let auth/guard.py decide.
get_session() raises 401 via the guard when there is no session.
require_admin() raises 401 or 403 via the guard.

The HTTP status mapping lives in api/main.py's exception handlers; this module
only raises core.errors types.

Layer rule: no imports from api/ or kb/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.guard import enforce
from auth.models import Role, Session
from auth.tokens import decode_access_token


def try_get_session(request: Request) -> Session | None:
    """Decode the caller's session from cookie or Bearer header.

    Returns None for a missing, expired, tampered or malformed token. Never
    raises.
    """
    token = request.cookies.get("access_token")
    if token:
        session = decode_access_token(token)
        if session is not None:
            return session

    auth_header = request.headers.get("Authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return decode_access_token(credentials.strip())

    return None


def get_session(request: Request) -> Session:
    """Require any authenticated session. Raises AuthenticationError (401)."""
    session = try_get_session(request)
    enforce(session, Role.USER)
    return session


def require_admin(request: Request) -> Session:
    """Require an ADMIN session. Raises AuthenticationError (401) or AuthorizationError (403)."""
    session = try_get_session(request)
    enforce(session, Role.ADMIN)
    return session
