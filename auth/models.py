"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in tracker/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/, web/, or tracker/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLES = ("user", "admin")


@dataclass
class User:
    """A registered account.

    Created at signup and never mutated afterwards. hashed_password is the
    bcrypt hash; the plaintext is never stored.
    """

    id: str  # UUID4 string
    email: str
    role: str  # "user" | "admin"
    hashed_password: str = ""
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class Identity:
    """The acting user attached to request.state by the access gate.

    Built from the live user row on every request, so a role change takes
    effect on the next request without waiting for the session to expire.
    """

    id: str
    role: str
    email: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
