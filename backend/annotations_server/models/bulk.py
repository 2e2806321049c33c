"""Pydantic models for bulk operations and record-level results."""

from typing import Any

from pydantic import BaseModel, Field

from annotations_server.models.annotation import Annotation, AnnotationStatus

# Reasons reported per item in bulk results
REASON_NOT_FOUND = "not found"
REASON_INVALID_ID = "invalid id"


class UpdatedItem(BaseModel):
    """An annotation whose status was changed by a bulk update."""

    id: str
    old_status: AnnotationStatus
    new_status: AnnotationStatus


class FailedItem(BaseModel):
    """An id a bulk update could not apply."""

    id: Any
    reason: str


class BulkUpdateResult(BaseModel):
    """Per-item outcome report for a bulk status update."""

    success: bool
    updated: list[UpdatedItem] = Field(default_factory=list)
    failed: list[FailedItem] = Field(default_factory=list)
    message: str = ""


class DeletePreviewItem(BaseModel):
    """Truncated view of an annotation that a batch delete would remove."""

    id: str
    comment: str
    created_at: str


class DeletedItem(BaseModel):
    """Truncated view of an annotation removed by a batch delete."""

    id: str
    origin: str
    comment: str


class BulkDeleteResult(BaseModel):
    """Preview or execution report for a pattern-matched batch delete."""

    origin_pattern: str
    count: int
    deleted: bool
    message: str
    preview: dict[str, list[DeletePreviewItem]] | None = None
    urls_affected: list[str] | None = None
    deleted_annotations: list[DeletedItem] | None = None
    remaining_total: int | None = None


class StatusChange(BaseModel):
    """Result of a single-record status update."""

    annotation: Annotation
    old_status: AnnotationStatus
    new_status: AnnotationStatus


class DeleteResult(BaseModel):
    """Result of a single-record delete."""

    id: str
    deleted: bool = True
    message: str
    deleted_annotation: Annotation


class ReplaceAllResult(BaseModel):
    """Result of a replace-all push."""

    success: bool = True
    count: int
    skipped: bool = False
