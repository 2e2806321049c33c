"""Bulk mutations: batch status transitions and pattern-matched deletes.

Each bulk operation validates its request up front, then runs as a single
WriteQueue operation so no other mutation can interleave mid-batch.
"""

from __future__ import annotations

import logging
from typing import Any

from annotations_server.db.write_queue import WriteQueue
from annotations_server.errors import ValidationError
from annotations_server.models import (
    REASON_INVALID_ID,
    REASON_NOT_FOUND,
    Annotation,
    AnnotationStatus,
    BulkDeleteResult,
    BulkUpdateResult,
    DeletedItem,
    DeletePreviewItem,
    FailedItem,
    UpdatedItem,
)
from annotations_server.services.query_engine import origin_matcher

logger = logging.getLogger(__name__)

PREVIEW_COMMENT_CHARS = 100


def validate_status(status: Any) -> AnnotationStatus:
    """Validate a target status (the "all" wildcard is not a target)."""
    if isinstance(status, AnnotationStatus):
        return status
    try:
        return AnnotationStatus(status)
    except ValueError:
        raise ValidationError(
            f"Invalid status: {status}. Must be one of: {', '.join(AnnotationStatus.values())}"
        ) from None


def validate_ids(ids: Any) -> list[Any]:
    """Validate that ids is a non-empty list. Items are checked per id later."""
    if not isinstance(ids, list) or len(ids) == 0:
        raise ValidationError("ids must be a non-empty array")
    return ids


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def truncate_comment(comment: str, limit: int = PREVIEW_COMMENT_CHARS) -> str:
    """Shorten a comment for previews."""
    if len(comment) > limit:
        return comment[:limit] + "..."
    return comment


def apply_status_update(
    records: list[Annotation], ids: list[Any], status: AnnotationStatus
) -> BulkUpdateResult:
    """Apply a status transition to every id in place, recording each outcome."""
    by_id = {r.id: r for r in records}
    updated: list[UpdatedItem] = []
    failed: list[FailedItem] = []

    for annotation_id in ids:
        if not is_valid_id(annotation_id):
            failed.append(FailedItem(id=annotation_id, reason=REASON_INVALID_ID))
            continue

        annotation = by_id.get(annotation_id)
        if annotation is None:
            failed.append(FailedItem(id=annotation_id, reason=REASON_NOT_FOUND))
            continue

        old_status = annotation.status
        annotation.status = status
        annotation.touch()
        updated.append(
            UpdatedItem(id=annotation_id, old_status=old_status, new_status=status)
        )

    if failed:
        message = f"Updated {len(updated)} annotations, {len(failed)} failed"
    else:
        message = f"Successfully updated {len(updated)} annotations"

    return BulkUpdateResult(
        success=not failed,
        updated=updated,
        failed=failed,
        message=message,
    )


def build_delete_preview(
    origin_pattern: str, matching: list[Annotation]
) -> BulkDeleteResult:
    """Preview of a batch delete, grouped by full origin."""
    preview: dict[str, list[DeletePreviewItem]] = {}
    for annotation in matching:
        preview.setdefault(annotation.origin, []).append(
            DeletePreviewItem(
                id=annotation.id,
                comment=truncate_comment(annotation.comment),
                created_at=annotation.created_at,
            )
        )
    return BulkDeleteResult(
        origin_pattern=origin_pattern,
        count=len(matching),
        deleted=False,
        message=(
            f"Found {len(matching)} annotation(s) that would be deleted. "
            "Set confirm=true to proceed with deletion."
        ),
        preview=preview,
        urls_affected=list(preview),
    )


def _no_match(origin_pattern: str) -> BulkDeleteResult:
    return BulkDeleteResult(
        origin_pattern=origin_pattern,
        count=0,
        deleted=False,
        message="No annotations found matching the origin pattern",
    )


class BulkMutator:
    """Validated batch mutations run as single serialized operations."""

    def __init__(self, queue: WriteQueue) -> None:
        self._queue = queue

    async def update_status(self, ids: Any, status: Any) -> BulkUpdateResult:
        """Set the status of many annotations at once.

        Every id is processed independently: unknown or malformed ids are
        reported in ``failed`` without aborting the rest.

        Raises:
            ValidationError: If status is not a legal value or ids is not a
                non-empty list. Nothing is attempted in that case.
        """
        target = validate_status(status)
        id_list = validate_ids(ids)

        def mutate(
            records: list[Annotation],
        ) -> tuple[BulkUpdateResult, list[Annotation] | None]:
            result = apply_status_update(records, id_list, target)
            return result, (records if result.updated else None)

        result = await self._queue.submit(mutate)
        logger.info(
            f"Bulk status update to {target.value}: "
            f"{len(result.updated)} updated, {len(result.failed)} failed"
        )
        return result

    async def delete_matching(
        self, origin_pattern: Any, confirm: Any = False
    ) -> BulkDeleteResult:
        """Delete every annotation whose origin matches a pattern.

        Without ``confirm`` this only previews what would be removed.

        Raises:
            ValidationError: If the pattern is empty or confirm is not a bool.
        """
        if not isinstance(origin_pattern, str) or not origin_pattern.strip():
            raise ValidationError("origin_pattern must be a non-empty string")
        if not isinstance(confirm, bool):
            raise ValidationError("confirm must be a boolean")

        matches = origin_matcher(origin_pattern)

        if not confirm:
            records = await self._queue.store.load()
            matching = [r for r in records if matches(r.origin)]
            if not matching:
                return _no_match(origin_pattern)
            return build_delete_preview(origin_pattern, matching)

        def mutate(
            records: list[Annotation],
        ) -> tuple[BulkDeleteResult, list[Annotation] | None]:
            matching = [r for r in records if matches(r.origin)]
            if not matching:
                return _no_match(origin_pattern), None
            remaining = [r for r in records if not matches(r.origin)]
            result = BulkDeleteResult(
                origin_pattern=origin_pattern,
                count=len(matching),
                deleted=True,
                message=(
                    f"Successfully deleted {len(matching)} annotation(s) "
                    f"for project {origin_pattern}"
                ),
                deleted_annotations=[
                    DeletedItem(
                        id=r.id, origin=r.origin, comment=truncate_comment(r.comment)
                    )
                    for r in matching
                ],
                remaining_total=len(remaining),
            )
            return result, remaining

        result = await self._queue.submit(mutate)
        if result.deleted:
            logger.info(
                f"Deleted {result.count} annotation(s) matching {origin_pattern}"
            )
        return result
