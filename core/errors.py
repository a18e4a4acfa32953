"""
core/errors.py -- Error taxonomy shared by every layer.

Each exception carries the HTTP status and the client-visible message it maps
to. api/main.py registers one handler for TrackerError that renders the
standard envelope:

    {"error": "<message>", "details": [...]}   # details only when present

Messages here are safe to show to clients. Anything internal (SQL errors,
stack traces) is logged and replaced with Internal's generic message.

Layer rule: no imports from api/, web/, auth/, or tracker/.
"""

from __future__ import annotations

from typing import Any


class TrackerError(Exception):
    """Base class for errors that terminate a request with a known status."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: list[dict[str, Any]] | None = None) -> None:
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(TrackerError):
    """Payload or query failed schema validation. details lists {field, message}."""

    status_code = 400
    message = "Invalid input"


class Unauthenticated(TrackerError):
    status_code = 401
    message = "Unauthorized"


class InvalidCredentials(Unauthenticated):
    """Login failed. Never says whether the email or the password was wrong."""

    message = "Invalid credentials"


class Forbidden(TrackerError):
    status_code = 403
    message = "Forbidden"


class NotFound(TrackerError):
    status_code = 404
    message = "Not found"


class Conflict(TrackerError):
    status_code = 400
    message = "Conflict"


class DuplicateEmail(Conflict):
    message = "User already exists"


class Internal(TrackerError):
    status_code = 500
    message = "Internal server error"


class InvalidToken(Exception):
    """Session token failed verification (signature, algorithm, expiry, claims).

    Not a TrackerError: the access gate converts it into the
    generic Unauthenticated outcome so the reason is never exposed.
    """
