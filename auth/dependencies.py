"""
auth/dependencies.py -- Identity resolution and FastAPI Depends() helpers.

Two credential carriers are checked in priority order:
  1. "session" cookie -- set by the login/signup flows (browser and API).
  2. Authorization: Bearer <token> header -- non-browser API clients.

resolve_identity() is the soft variant (returns None on any failure). The
access gate middleware in api/main.py calls it once per request and stores
the result on request.state. Route dependencies then read request.state
instead of decoding the token again:

    current_identity() -- raises Unauthenticated if the gate attached nothing.

Layer rule: no imports from web/ or tracker/.
  This module may import from fastapi because it is part of the FastAPI
  dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.models import Identity
from auth.sessions import SESSION_COOKIE, SessionCodec
from auth.store import UserStore
from core.errors import InvalidToken, Unauthenticated

logger = logging.getLogger("issuetracker.auth")


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
    return token or None


def resolve_identity(request: Request) -> Identity | None:
    """Return the acting user's identity, or None if the request is unauthenticated.

    Missing token, malformed or expired token, and a token naming a user that
    no longer exists all produce None. The role comes from the current user
    row, never from the token.
    """
    token = _extract_token(request)
    if token is None:
        return None

    codec: SessionCodec = request.app.state.sessions
    try:
        user_id = codec.verify(token)
    except InvalidToken as exc:
        logger.debug("Rejected session token: %s", exc)
        return None

    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(user_id)
    if user is None:
        logger.info("Session token references missing user %s", user_id)
        return None
    return Identity(id=user.id, role=user.role, email=user.email)


def attach_identity(request: Request, identity: Identity) -> None:
    """Expose the identity to downstream handlers via request-scoped state."""
    request.state.identity = identity
    request.state.user_id = identity.id
    request.state.user_role = identity.role


def current_identity(request: Request) -> Identity:
    """Require an identity attached by the access gate.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(current_identity)): ...
    """
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise Unauthenticated()
    return identity
