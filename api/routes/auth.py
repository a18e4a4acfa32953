"""
api/routes/auth.py -- Signup, login, logout, and current-user endpoints.

Routes (mounted under /api):
  POST /auth/signup   -- create account; sets session cookie; 201
  POST /auth/login    -- password login; sets session cookie; 200
  POST /auth/logout   -- clears session cookie; 200
  GET  /auth/me       -- identity of the acting user

Security:
  signup and login are the only public API paths (see PUBLIC_PATHS in
  api/main.py) and are rate limited per client IP.
  authenticate() provides timing equalization -- use it, never inline
  get_by_email() + verify_password().
  Login never says whether the email or the password was wrong.
  Cache-Control: no-store on every response that carries credentials.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import AuthResponse, MessageResponse, UserResponse
from auth.dependencies import current_identity
from auth.models import Identity, User
from auth.passwords import authenticate, hash_password
from auth.schemas import LoginRequest, SignupRequest
from auth.sessions import SessionCodec, clear_session_cookie, set_session_cookie
from auth.store import UserStore
from core.errors import InvalidCredentials

logger = logging.getLogger("issuetracker.api")

router = APIRouter()


def _session_response(request: Request, user: User, message: str, status_code: int) -> JSONResponse:
    """Build the {message, user} response and attach a fresh session cookie."""
    codec: SessionCodec = request.app.state.sessions
    settings = request.app.state.settings
    token = codec.issue(user.id)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(message=message, user=UserResponse.from_user(user)).model_dump(),
    )
    set_session_cookie(resp, token, max_age=codec.ttl_seconds, secure=settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=AuthResponse, status_code=201)
@limiter.limit("5/minute")
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Create an account and log it in.

    Raises DuplicateEmail (400 "User already exists") if the email is taken.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.create_user(
        email=body.email,
        hashed_password=hash_password(body.password),
        role=body.role.value,
    )
    logger.info("Signup: user %s created with role %s", user.id, user.role)
    return _session_response(request, user, "User created successfully", 201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit("10/minute")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie."""
    user_store: UserStore = request.app.state.user_store
    user = authenticate(user_store, body.email, body.password)
    if user is None:
        resp = JSONResponse(status_code=401, content=InvalidCredentials().to_dict())
        resp.headers["Cache-Control"] = "no-store"
        return resp
    return _session_response(request, user, "Login successful", 200)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(identity: Identity = Depends(current_identity)) -> JSONResponse:
    """Clear the session cookie."""
    resp = JSONResponse(content=MessageResponse(message="Logout successful").model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/auth/me", response_model=UserResponse)
def me(identity: Identity = Depends(current_identity)) -> UserResponse:
    """Return the acting user. The gate read this from the user row on this request."""
    return UserResponse(id=identity.id, email=identity.email, role=identity.role)
