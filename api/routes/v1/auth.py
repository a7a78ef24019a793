"""
api/routes/v1/auth.py -- Login, session, and user management endpoints.

Routes:
  POST  /api/v1/auth/login         -- email/password login; sets JWT cookie
  POST  /api/v1/auth/logout        -- clears cookie
  POST  /api/v1/auth/register      -- self registration (USER role), if enabled
  POST  /api/v1/auth/refresh       -- re-sign the session with the current stored role
  GET   /api/v1/auth/me            -- caller identity (requires session)
  POST  /api/v1/auth/users         -- create user (admin only)
  GET   /api/v1/auth/users         -- list users (admin only)
  PATCH /api/v1/auth/users/{id}    -- change role / rotate password (admin only)

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_email() + verify_password().
  Wrong email and wrong password produce the same 401 body.
  Cache-Control: no-store on every response that carries a token.
  PATCH /users/{id} refuses to demote the last admin.

Handlers are sync `def` so FastAPI runs them in its worker thread pool;
bcrypt and store I/O never block the event loop.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import ErrorDetail, LoginResponse, MeResponse, UserResponse
from auth.dependencies import get_session, require_admin
from auth.models import Role, Session, User
from auth.schemas import LoginRequest, RegisterRequest, UserCreate, UserUpdate
from auth.store import UserStore
from auth.tokens import authenticate_user, create_access_token, hash_password, refresh_access_token, set_auth_cookie
from core.config import get_settings
from core.errors import AuthenticationError, NotFoundError
from core.validation import validate_payload

# Auth policy:
# - POST  /auth/login, /auth/logout, /auth/register: public
# - POST  /auth/refresh, GET /auth/me:               session (get_session)
# - POST/GET /auth/users, PATCH /auth/users/{id}:    admin (require_admin)
router = APIRouter()

_settings = get_settings()


def _token_response(user: User, token: str, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=_settings.token_expire_seconds,
            user_id=user.id,
            email=user.email,
            role=user.role.value,
        ).model_dump(),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, payload: Any = Body(default=None)) -> JSONResponse:
    """Verify email and password; return a session token and set it as a cookie.

    Unknown email and wrong password return the identical "bad_credentials"
    response after the same bcrypt work.
    """
    body = validate_payload(LoginRequest, payload)
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    return _token_response(user, create_access_token(user.id, user.role))


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Clear the session cookie. Bearer tokens stay valid until they expire."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, payload: Any = Body(default=None)) -> UserResponse:
    """Create a USER account. Disabled unless SELF_REGISTRATION_ENABLED=true."""
    if not _settings.self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail=ErrorDetail(code="registration_disabled", message="Self registration is disabled.").model_dump(
                exclude_none=True
            ),
        )
    body = validate_payload(RegisterRequest, payload)
    user_store: UserStore = request.app.state.user_store
    created = user_store.create_user(
        User(email=body.email, hashed_password=hash_password(body.password), role=Role.USER)
    )
    return UserResponse.from_user(created)


# ---------------------------------------------------------------------------
# Session endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/refresh", response_model=LoginResponse)
def refresh(request: Request, session: Session = Depends(get_session)) -> JSONResponse:
    """Issue a fresh token carrying the user's current role."""
    user_store: UserStore = request.app.state.user_store
    refreshed = refresh_access_token(user_store, session)
    if refreshed is None:
        raise AuthenticationError("Account no longer exists.")
    token, user = refreshed
    return _token_response(user, token)


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, session: Session = Depends(get_session)) -> MeResponse:
    """Return identity information for the current session."""
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(session.user_id)
    if user is None:
        raise AuthenticationError("Account no longer exists.")
    return MeResponse(
        user_id=user.id,
        email=user.email,
        role=session.role.value,
        session_expires_at=session.expires_at.isoformat(),
    )


# ---------------------------------------------------------------------------
# User management (admin only)
# ---------------------------------------------------------------------------


@router.post("/auth/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    payload: Any = Body(default=None),
    current: Session = Depends(require_admin),
) -> UserResponse:
    """Create a user with any role. Duplicate email -> 409 conflict."""
    body = validate_payload(UserCreate, payload)
    user_store: UserStore = request.app.state.user_store
    created = user_store.create_user(
        User(email=body.email, hashed_password=hash_password(body.password), role=body.role)
    )
    return UserResponse.from_user(created)


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(request: Request, current: Session = Depends(require_admin)) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.patch("/auth/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: str,
    payload: Any = Body(default=None),
    current: Session = Depends(require_admin),
) -> UserResponse:
    """Change a user's role and/or rotate their password. Admin only.

    Tokens already issued keep their role snapshot until they expire or are
    refreshed.
    """
    body = validate_payload(UserUpdate, payload)
    user_store: UserStore = request.app.state.user_store

    updates: dict = {}
    if body.role is not None:
        updates["role"] = body.role
    if body.password is not None:
        updates["hashed_password"] = hash_password(body.password)

    # Raises LastAdminError (400) when the change would leave no admin.
    updated = user_store.update_user(user_id, **updates)
    if updated is None:
        raise NotFoundError("user", user_id)
    return UserResponse.from_user(updated)
