"""
api/main.py -- FastAPI application entry point for the issue tracker.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- method, path, status, latency for every request
  2. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  3. CORSMiddleware        -- adds CORS headers for allowed browser origins
  4. access_gate           -- resolves the session into an Identity or rejects
  5. SlowAPIMiddleware     -- rate limiting; @limiter.limit routes check their own

Lifespan builds the engine, stores, and session codec from Settings once at
startup and disposes the engine on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.issues import router as issues_router
from api.routes.users import router as users_router
from auth.dependencies import attach_identity, resolve_identity
from auth.sessions import SessionCodec
from auth.store import UserStore
from core.config import get_settings
from core.db import create_db_engine
from core.errors import Internal, TrackerError, Unauthenticated, ValidationError
from core.validation import errors_to_details
from tracker.store import IssueStore

APP_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("issuetracker.api")

# Read once at import: middleware configuration cannot change after startup.
_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build application-level resources and tear them down symmetrically.

    Everything hangs off app.state; handlers reach it through request.app.state
    instead of module globals, which is also what lets tests swap in an
    in-memory database.
    """
    logger.info("Issue tracker API starting up")
    settings = get_settings()
    engine = create_db_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.user_store = UserStore(engine)
    app.state.issue_store = IssueStore(engine)
    app.state.sessions = SessionCodec(settings.secret_key, settings.session_ttl_seconds)
    logger.info("Database initialized (%s)", engine.url.get_backend_name())

    yield

    engine.dispose()
    logger.info("Issue tracker API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Issue Tracker API",
    description="Issues, comments, and users behind cookie-based sessions.",
    version=APP_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() and @app.middleware both wrap the current stack, so the
# LAST registration is the OUTERMOST layer. Everything below is registered
# innermost first: SlowAPI, access gate, CORS, TrustedHost, request logging.
# CORS must sit outside the gate so preflight OPTIONS requests are answered
# without a session.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Access gate
#
# Runs before every route. Public paths pass straight through. Everything
# else needs a valid session; the outcome of a failure depends on who is
# asking: API clients get a JSON 401, browsers get sent to the login page.
# ---------------------------------------------------------------------------

PUBLIC_PATHS = frozenset(
    {
        "/login",
        "/signup",
        "/api/auth/login",
        "/api/auth/signup",
        "/api/health",
    }
)
PUBLIC_PREFIXES = ("/static/",)


def _is_api_path(path: str) -> bool:
    return path == "/api" or path.startswith("/api/")


@app.middleware("http")
async def access_gate(request: Request, call_next):
    """Resolve the session into request.state.identity or reject the request.

    Missing cookie, bad or expired token, and a deleted user all end the same
    way. Identity resolution hits the database, so it runs in the threadpool.
    """
    path = request.url.path
    if path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES):
        return await call_next(request)

    identity = await run_in_threadpool(resolve_identity, request)
    if identity is None:
        if _is_api_path(path):
            return JSONResponse(status_code=401, content=Unauthenticated().to_dict())
        target = f"{path}?{request.url.query}" if request.url.query else path
        return RedirectResponse(f"/login?next={quote(target)}", status_code=302)

    attach_identity(request, identity)
    return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)


# ---------------------------------------------------------------------------
# Request logging middleware -- outermost, so it also times rejected requests.
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

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(issues_router, prefix="/api", tags=["Issues"])
app.include_router(users_router, prefix="/api", tags=["Users"])
# Web UI router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {"error": ..., "details": [...]} envelope.
# ---------------------------------------------------------------------------


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s", type(exc).__name__, request.method, request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with field-level messages when a body or query param fails validation."""
    error = ValidationError(details=errors_to_details(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(error="Too many requests").model_dump(exclude_none=True),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (unknown route, wrong method) in the standard envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Map any data-layer failure to a generic 500.

    The SQL error goes to the log only. Statement text and driver messages
    can reveal schema details and must not reach the client.
    """
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=Internal().to_dict())


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. Logged in full, reported generically."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=Internal().to_dict())


# ---------------------------------------------------------------------------
# Health endpoint -- public, not rate limited
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=APP_VERSION)
