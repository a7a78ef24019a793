"""
api/main.py -- FastAPI application entry point for the knowledge base.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the Database and hands its collections to the stores and
services on app.state (startup), and disposes the engine (shutdown). Nothing
reaches the database through a module-level handle.

Error taxonomy (core/errors.py) -> HTTP:
  ValidationError 422, AuthenticationError 401, AuthorizationError 403,
  NotFoundError 404, ConflictError 409, LastAdminError 400, StoreError 500.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.articles import router as articles_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.products import router as products_router
from api.routes.v1.search import router as search_router
from auth.bootstrap import ensure_admin
from auth.dependencies import get_session
from auth.models import Session
from auth.store import UserStore
from core.config import get_settings
from core.database import Database
from core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    LastAdminError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from core.validation import errors_to_fields
from kb.search import SearchService
from kb.service import ArticleService, ProductService

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("knowledgebase.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def attach_services(app: FastAPI, db: Database) -> None:
    """Build the store and services around db and publish them on app.state.

    Shared by the real lifespan and the test fixtures so both wire identically.
    """
    app.state.db = db
    app.state.user_store = UserStore(db.users)
    app.state.articles = ArticleService(db.articles)
    app.state.products = ProductService(db.products)
    app.state.search = SearchService(db.articles)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


def prepare_accounts(user_store: UserStore) -> None:
    """Ensure the bootstrap admin, then warn when no account or no admin exists.

    When ADMIN_EMAIL and ADMIN_PASSWORD are both configured the bootstrap
    admin is ensured before the first request. Invalid bootstrap credentials
    are logged and skipped rather than preventing startup.
    """
    if _settings.admin_email and _settings.admin_password:
        try:
            _user, created = ensure_admin(user_store, _settings.admin_email, _settings.admin_password)
            logger.info("Bootstrap admin %s", "created" if created else "already present")
        except ValidationError as exc:
            logger.error("Bootstrap admin skipped: %s", exc)

    if not user_store.has_users():
        logger.warning(
            "No user accounts exist. Set ADMIN_EMAIL and ADMIN_PASSWORD or run `python main.py create-admin`."
        )
    elif user_store.count_admins() == 0:
        logger.warning("No admin account exists; articles and products are read-only until one is created.")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the database and services on startup; dispose them on shutdown."""
    logger.info("Knowledge base API starting up")
    db = Database(_settings.database_url)
    attach_services(app, db)
    logger.info("Database initialized")
    prepare_accounts(app.state.user_store)

    yield

    db.close()
    logger.info("Knowledge base API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Knowledge Base API",
    description="Articles, products, and relevance search with role-gated writes.",
    version=API_VERSION,
    lifespan=lifespan,
    # Built-in /docs and /redoc are replaced by session-protected routes below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(articles_router, prefix="/api/v1", tags=["Articles"])
app.include_router(products_router, prefix="/api/v1", tags=["Products"])
app.include_router(search_router, prefix="/api/v1", tags=["Search"])


# ---------------------------------------------------------------------------
# Session-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(session: Session = Depends(get_session)):
    """Swagger UI -- requires a session."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="Knowledge Base API")


@app.get("/redoc", include_in_schema=False)
async def redoc(session: Session = Depends(get_session)):
    """ReDoc UI -- requires a session."""
    return get_redoc_html(openapi_url="/openapi.json", title="Knowledge Base API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# Expected failures (validation, auth, not found) are not logged as errors.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, **extra)).model_dump(exclude_none=True),
    )


@app.exception_handler(ValidationError)
async def payload_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(422, "validation_error", "Request validation failed.", fields=exc.fields)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reshape FastAPI's own query/path/body validation into the same fields map."""
    fields = errors_to_fields(exc.errors(), strip_location=True)
    return _error(422, "validation_error", "Request validation failed.", fields=fields)


@app.exception_handler(AuthenticationError)
async def authentication_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    resp = _error(401, "unauthenticated", str(exc))
    resp.headers["WWW-Authenticate"] = "Bearer"
    return resp


@app.exception_handler(AuthorizationError)
async def authorization_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
    return _error(403, "forbidden", str(exc))


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error(404, "not_found", f"{exc.kind.capitalize()} not found.")


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return _error(409, "conflict", "Resource already exists.")


@app.exception_handler(LastAdminError)
async def last_admin_handler(request: Request, exc: LastAdminError) -> JSONResponse:
    return _error(400, "last_admin", "Cannot demote the last admin account.")


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Generic 500. The store already logged operation, kind and id with the traceback."""
    return _error(500, "internal_error", "An unexpected error occurred.")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error and a Retry-After hint."""
    retry_after = int(getattr(exc, "retry_after", 60))
    resp = _error(429, "rate_limited", "Too many requests.", detail=str(exc))
    resp.headers["Retry-After"] = str(retry_after)
    return resp


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Route handlers raise HTTPException with an ErrorDetail dict as detail.

    A dict detail is used directly as the error field; anything else is
    wrapped in a generic http_<status> code.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is always reachable. No rate limit --
# load balancers and monitors must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and database reachability."""
    db: Database = request.app.state.db
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        components={"app": "ok", "database": "ok" if db.ping() else "error"},
    )
