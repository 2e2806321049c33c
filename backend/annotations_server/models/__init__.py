"""Pydantic models for the annotations server."""

from annotations_server.models.annotation import (
    STATUS_ALL,
    Annotation,
    AnnotationCreate,
    AnnotationStatus,
    AnnotationSummary,
    AnnotationUpdate,
    parse_timestamp,
)
from annotations_server.models.bulk import (
    REASON_INVALID_ID,
    REASON_NOT_FOUND,
    BulkDeleteResult,
    BulkUpdateResult,
    DeletedItem,
    DeletePreviewItem,
    DeleteResult,
    FailedItem,
    ReplaceAllResult,
    StatusChange,
    UpdatedItem,
)
from annotations_server.models.query import (
    AnnotationPage,
    MultiProjectWarning,
    Pagination,
    ProjectGroup,
)

__all__ = [
    # Records
    "Annotation",
    "AnnotationCreate",
    "AnnotationUpdate",
    "AnnotationStatus",
    "AnnotationSummary",
    "STATUS_ALL",
    "parse_timestamp",
    # Queries
    "AnnotationPage",
    "Pagination",
    "ProjectGroup",
    "MultiProjectWarning",
    # Results
    "BulkUpdateResult",
    "BulkDeleteResult",
    "UpdatedItem",
    "FailedItem",
    "DeletePreviewItem",
    "DeletedItem",
    "DeleteResult",
    "StatusChange",
    "ReplaceAllResult",
    "REASON_NOT_FOUND",
    "REASON_INVALID_ID",
]
