"""
auth/sessions.py -- Session token codec and session cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry only the user id (sub), issued-at
       (iat), and expiry (exp). Role is absent: the access gate
       re-reads it from the database on every request.

  Algorithm pinning: verify() reads the unverified header first and rejects
       anything other than HS256 (including "none") before decoding, and the
       decode call itself only accepts HS256. Both guards must pass.

  Secret: injected by the caller (built from core.config.Settings once at
       startup). This module never reads configuration itself.

  Cookie: "session", httpOnly (not readable by JS), samesite=lax (not sent on
       cross-site POST), secure outside dev mode, max_age equal to the token
       lifetime so both expire together.

Layer rule: no imports from api/, web/, or tracker/.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.errors import InvalidToken

SESSION_COOKIE = "session"
ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 24 * 60 * 60


class SessionCodec:
    """Encode and verify signed, time-limited session tokens.

    Usage:
        codec = SessionCodec(settings.secret_key, settings.session_ttl_seconds)
        token = codec.issue(user.id)
        user_id = codec.verify(token)   # raises InvalidToken
    """

    def __init__(self, secret_key: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        if not secret_key:
            raise ValueError("SessionCodec requires a non-empty secret key.")
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds

    def issue(self, user_id: str) -> str:
        """Return a signed token for user_id that expires ttl_seconds from now."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "iat": now,
            "exp": now + timedelta(seconds=self.ttl_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def verify(self, token: str) -> str:
        """Return the user id carried by token.

        Raises InvalidToken if the token is malformed, signed with another key
        or algorithm, expired, or missing the subject claim.
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise InvalidToken("malformed token") from exc
        if header.get("alg") != ALGORITHM:
            raise InvalidToken("unexpected algorithm")
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                options={"require_exp": True, "require_iat": True, "require_sub": True},
            )
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc
        user_id = payload.get("sub")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidToken("missing subject")
        return user_id


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, max_age: int, secure: bool) -> None:
    """Write the session token as an httpOnly cookie on the response."""
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE, httponly=True, samesite="lax")
