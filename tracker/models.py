"""
tracker/models.py -- Domain dataclasses for issues and comments.

These are pure data containers with zero logic beyond derived properties.
Authorization rules live in tracker/service.py; SQL lives in tracker/store.py.

id is "" before the record is written to the database.
"""

from dataclasses import dataclass, field
from math import ceil
from typing import Optional

STATUSES = ("open", "closed")
PRIORITIES = ("low", "medium", "high")


@dataclass
class UserRef:
    """The public face of a user nested inside an issue or comment."""

    id: str
    email: str


@dataclass
class Issue:
    """A tracked issue.

    created_by never changes after insert. author/assignee are resolved by
    the store on read; they are None on a freshly built, unsaved Issue.
    """

    title: str
    description: str
    created_by: str
    status: str = "open"  # "open" | "closed"
    priority: str = "medium"  # "low" | "medium" | "high"
    assigned_to: Optional[str] = None
    id: str = ""
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, bumped on every update
    author: Optional[UserRef] = None
    assignee: Optional[UserRef] = None


@dataclass
class Comment:
    """A comment on an issue. Immutable once written."""

    issue_id: str
    user_id: str
    content: str
    id: str = ""
    created_at: str = ""
    author: Optional[UserRef] = None


@dataclass
class IssueFilter:
    status: Optional[str] = None
    priority: Optional[str] = None
    search: Optional[str] = None


@dataclass
class IssuePage:
    """One page of issues plus the size of the full filtered result set."""

    page: int
    page_size: int
    total: int
    issues: list[Issue] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.page_size) if self.page_size else 0
