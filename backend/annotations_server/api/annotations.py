"""Annotation API routes used by the capture client.

Provides single-record create/read/update/delete, the replace-all sync push,
the full export read by reconciliation, and list/bulk endpoints.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from annotations_server.errors import (
    AnnotationError,
    NotFoundError,
    StorageWriteError,
    ValidationError,
)
from annotations_server.hub import AnnotationHub
from annotations_server.api.deps import get_hub
from annotations_server.models import (
    Annotation,
    AnnotationCreate,
    AnnotationPage,
    AnnotationUpdate,
    BulkUpdateResult,
    DeleteResult,
    ReplaceAllResult,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================


class SyncRequest(BaseModel):
    """Full local state pushed by the capture client."""

    annotations: list[Annotation]


class ExportResponse(BaseModel):
    """The whole collection, in stored order."""

    annotations: list[Annotation]
    count: int


class AnnotationResponse(BaseModel):
    """A single saved annotation."""

    success: bool = True
    annotation: Annotation


class BulkStatusRequest(BaseModel):
    """Bulk status transition. Fields are validated by the bulk mutator."""

    ids: Any = None
    status: Any = None


class AttachmentResponse(BaseModel):
    annotation_id: str
    attachment: dict[str, Any] | None = None


# Failures a route turns into HTTP errors
HANDLED_ERRORS = (ValidationError, NotFoundError, StorageWriteError)


def _http_error(e: AnnotationError) -> HTTPException:
    if isinstance(e, StorageWriteError):
        logger.error(f"Failed to save annotations: {e}")
        return HTTPException(status_code=500, detail="Failed to save annotations")
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# =============================================================================
# Collection
# =============================================================================


@router.get("/annotations", response_model=AnnotationPage)
async def list_annotations(
    status: str = Query("all", description="Status filter, or 'all'"),
    origin: str | None = Query(None, description="Exact origin or prefix pattern (trailing '/' or '*')"),
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    hub: AnnotationHub = Depends(get_hub),
) -> AnnotationPage:
    """List annotations with filters and pagination."""
    try:
        return await hub.query.list_annotations(
            status=status, origin=origin, limit=limit, offset=offset
        )
    except ValidationError as e:
        raise _http_error(e)


@router.get("/annotations/export", response_model=ExportResponse)
async def export_annotations(hub: AnnotationHub = Depends(get_hub)) -> ExportResponse:
    """The full collection, read by edge-cache reconciliation."""
    annotations = await hub.annotations.export()
    return ExportResponse(annotations=annotations, count=len(annotations))


@router.post("/annotations", response_model=AnnotationResponse)
async def save_annotation(
    data: AnnotationCreate, hub: AnnotationHub = Depends(get_hub)
) -> AnnotationResponse:
    """Create an annotation, or update the one with the same id."""
    try:
        annotation = await hub.annotations.create(data)
    except HANDLED_ERRORS as e:
        raise _http_error(e)
    return AnnotationResponse(annotation=annotation)


@router.post("/annotations/sync", response_model=ReplaceAllResult)
async def sync_annotations(
    request: SyncRequest, hub: AnnotationHub = Depends(get_hub)
) -> ReplaceAllResult:
    """Replace every annotation with the client's full local state.

    Returns ``skipped: true`` without writing when nothing changed.
    """
    try:
        return await hub.annotations.replace_all(request.annotations)
    except HANDLED_ERRORS as e:
        raise _http_error(e)


@router.post("/annotations/bulk-status", response_model=BulkUpdateResult)
async def bulk_update_status(
    request: BulkStatusRequest, hub: AnnotationHub = Depends(get_hub)
) -> BulkUpdateResult:
    """Set the status of many annotations, reporting each id's outcome."""
    try:
        return await hub.bulk.update_status(request.ids, request.status)
    except HANDLED_ERRORS as e:
        raise _http_error(e)


# =============================================================================
# Single annotation
# =============================================================================


@router.get("/annotations/{annotation_id}", response_model=Annotation)
async def get_annotation(
    annotation_id: str, hub: AnnotationHub = Depends(get_hub)
) -> Annotation:
    """Get an annotation by ID."""
    try:
        return await hub.annotations.get(annotation_id)
    except HANDLED_ERRORS as e:
        raise _http_error(e)


@router.put("/annotations/{annotation_id}", response_model=AnnotationResponse)
async def update_annotation(
    annotation_id: str,
    data: AnnotationUpdate,
    hub: AnnotationHub = Depends(get_hub),
) -> AnnotationResponse:
    """Update an annotation's comment, status, or pass-through fields."""
    try:
        annotation = await hub.annotations.update(annotation_id, data)
    except HANDLED_ERRORS as e:
        raise _http_error(e)
    return AnnotationResponse(annotation=annotation)


@router.delete("/annotations/{annotation_id}", response_model=DeleteResult)
async def delete_annotation(
    annotation_id: str, hub: AnnotationHub = Depends(get_hub)
) -> DeleteResult:
    """Delete an annotation."""
    try:
        return await hub.annotations.delete(annotation_id)
    except HANDLED_ERRORS as e:
        raise _http_error(e)


@router.get("/annotations/{annotation_id}/attachment", response_model=AttachmentResponse)
async def get_attachment(
    annotation_id: str, hub: AnnotationHub = Depends(get_hub)
) -> AttachmentResponse:
    """Get the attachment stored with an annotation."""
    try:
        attachment = await hub.annotations.get_attachment(annotation_id)
    except HANDLED_ERRORS as e:
        raise _http_error(e)
    return AttachmentResponse(annotation_id=annotation_id, attachment=attachment)
