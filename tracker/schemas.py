"""
Request schemas for issues, comments, and issue list queries.

These Pydantic v2 models are the validation contract for every way data
enters the tracker: JSON bodies on the REST API, HTML form posts from the web
UI, and list query strings. They are separate from the dataclasses in
tracker/models.py, which own the stored representation.
"""

from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class StatusEnum(str, Enum):
    open = "open"
    closed = "closed"


class PriorityEnum(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------


class IssueCreate(BaseModel):
    """Body for creating an issue. The creator is always the acting user."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    status: StatusEnum = StatusEnum.open
    priority: PriorityEnum = PriorityEnum.medium
    assigned_to: Optional[UUID] = None


class IssueUpdate(BaseModel):
    """Body for updating an issue.

    Every field is optional and only the supplied ones change. assigned_to
    may be set to null to unassign; the other fields may be omitted but not
    nulled.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1)
    status: Optional[StatusEnum] = None
    priority: Optional[PriorityEnum] = None
    assigned_to: Optional[UUID] = None

    @field_validator("title", "description", "status", "priority", mode="before")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    def changes(self) -> dict[str, Any]:
        """Return only the fields the client sent, as plain JSON values."""
        return self.model_dump(mode="json", exclude_unset=True)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class CommentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# List query
# ---------------------------------------------------------------------------


class IssueQuery(BaseModel):
    """Query string for listing issues.

    Query values arrive as strings; Pydantic coerces page and page_size.
    Empty filter values (as submitted by an untouched HTML select) mean
    "no filter".
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)
    status: Optional[StatusEnum] = None
    priority: Optional[PriorityEnum] = None
    search: Optional[str] = Field(default=None, max_length=200)

    @field_validator("status", "priority", "search", mode="before")
    @classmethod
    def blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value
