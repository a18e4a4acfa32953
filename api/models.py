"""
API response models for the issue tracker REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
tracker/models.py, which own the internal domain representation, and from
the request schemas in auth/schemas.py and tracker/schemas.py. The
from_* class methods are the only place domain objects become JSON.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User
from tracker.models import Comment, Issue, IssuePage, UserRef

# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserSummary(BaseModel):
    """Nested author/assignee object."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str

    @classmethod
    def from_ref(cls, ref: Optional[UserRef]) -> Optional["UserSummary"]:
        return cls(id=ref.id, email=ref.email) if ref is not None else None


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, role=user.role)


class AuthResponse(BaseModel):
    """Response for POST /auth/login and POST /auth/signup."""

    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------


class IssueResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    status: str
    priority: str
    created_by: str
    assigned_to: Optional[str]
    created_at: str
    updated_at: str
    author: Optional[UserSummary]
    assignee: Optional[UserSummary]

    @classmethod
    def from_issue(cls, issue: Issue) -> "IssueResponse":
        return cls(
            id=issue.id,
            title=issue.title,
            description=issue.description,
            status=issue.status,
            priority=issue.priority,
            created_by=issue.created_by,
            assigned_to=issue.assigned_to,
            created_at=issue.created_at,
            updated_at=issue.updated_at,
            author=UserSummary.from_ref(issue.author),
            assignee=UserSummary.from_ref(issue.assignee),
        )


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    page_size: int
    total: int
    total_pages: int


class IssueListResponse(BaseModel):
    """Response for GET /issues: one page plus metadata for the whole result set."""

    model_config = ConfigDict(frozen=True)

    issues: list[IssueResponse]
    pagination: Pagination

    @classmethod
    def from_page(cls, page: IssuePage) -> "IssueListResponse":
        return cls(
            issues=[IssueResponse.from_issue(i) for i in page.issues],
            pagination=Pagination(
                page=page.page,
                page_size=page.page_size,
                total=page.total,
                total_pages=page.total_pages,
            ),
        )


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class CommentResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    issue_id: str
    user_id: str
    content: str
    created_at: str
    author: Optional[UserSummary]

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentResponse":
        return cls(
            id=comment.id,
            issue_id=comment.issue_id,
            user_id=comment.user_id,
            content=comment.content,
            created_at=comment.created_at,
            author=UserSummary.from_ref(comment.author),
        )


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    error: str
    details: Optional[list[dict[str, Any]]] = Field(default=None)


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
