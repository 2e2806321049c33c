"""Pydantic models for annotation records."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class AnnotationStatus(str, Enum):
    """Lifecycle status of an annotation."""

    PENDING = "pending"
    COMPLETED = "completed"
    ARCHIVED = "archived"

    @classmethod
    def values(cls) -> list[str]:
        return [s.value for s in cls]


# Wildcard accepted by list filters in place of a concrete status
STATUS_ALL = "all"


def generate_id() -> str:
    """Generate a unique annotation ID."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


class Annotation(BaseModel):
    """A stored annotation.

    `locator`, `attachment` and `provenance` belong to external collaborators
    and are stored exactly as received.
    """

    id: str = Field(min_length=1)
    origin: str
    locator: str | None = None
    comment: str
    status: AnnotationStatus = AnnotationStatus.PENDING
    created_at: str
    updated_at: str
    attachment: dict[str, Any] | None = None
    provenance: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _updated_not_before_created(self) -> "Annotation":
        if parse_timestamp(self.updated_at) < parse_timestamp(self.created_at):
            self.updated_at = self.created_at
        return self

    @property
    def has_attachment(self) -> bool:
        return bool(self.attachment)

    def touch(self) -> None:
        """Refresh updated_at after a mutation."""
        stamp = now_iso()
        if parse_timestamp(stamp) < parse_timestamp(self.created_at):
            stamp = self.created_at
        self.updated_at = stamp


class AnnotationCreate(BaseModel):
    """Request model for creating (or upserting) an annotation."""

    id: str | None = None
    origin: str = Field(min_length=1)
    locator: str | None = None
    comment: str = Field(min_length=1)
    attachment: dict[str, Any] | None = None
    provenance: dict[str, Any] | None = None

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("id must be a non-empty string")
        return v


class AnnotationUpdate(BaseModel):
    """Request model for updating an annotation. Unset fields are left alone."""

    comment: str | None = None
    status: AnnotationStatus | None = None
    locator: str | None = None
    attachment: dict[str, Any] | None = None
    provenance: dict[str, Any] | None = None


class AnnotationSummary(BaseModel):
    """An annotation as returned by list queries, without its attachment."""

    id: str
    origin: str
    locator: str | None = None
    comment: str
    status: AnnotationStatus
    created_at: str
    updated_at: str
    provenance: dict[str, Any] | None = None
    has_attachment: bool = False

    @classmethod
    def from_annotation(cls, annotation: Annotation) -> "AnnotationSummary":
        return cls(
            **annotation.model_dump(exclude={"attachment"}),
            has_attachment=annotation.has_attachment,
        )


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp, treating naive values as UTC."""
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts
