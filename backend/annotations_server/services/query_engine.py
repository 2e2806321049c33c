"""Query engine for annotation lists.

Provides status/origin filtering, grouping by project (coarse origin), and
offset/limit pagination over a loaded snapshot of the collection.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from annotations_server.errors import ValidationError
from annotations_server.models import (
    STATUS_ALL,
    Annotation,
    AnnotationPage,
    AnnotationStatus,
    AnnotationSummary,
    MultiProjectWarning,
    Pagination,
    ProjectGroup,
    parse_timestamp,
)

if TYPE_CHECKING:
    from annotations_server.db.record_store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_SAMPLE_PATHS = 5
WILDCARD = "*"


def validate_status_filter(status: str | None) -> AnnotationStatus | None:
    """Validate a status filter. Returns None for the "all" wildcard."""
    if status is None or status == STATUS_ALL:
        return None
    try:
        return AnnotationStatus(status)
    except ValueError:
        allowed = ", ".join([*AnnotationStatus.values(), STATUS_ALL])
        raise ValidationError(
            f"Invalid status: {status}. Must be one of: {allowed}"
        ) from None


def validate_page(limit: int, offset: int) -> None:
    """Validate pagination parameters."""
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError(f"limit must be a positive integer, got {limit!r}")
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise ValidationError(f"offset must be a non-negative integer, got {offset!r}")


def is_origin_pattern(value: str) -> bool:
    """Whether an origin filter asks for a prefix match."""
    return WILDCARD in value or value.endswith("/")


def origin_matcher(value: str) -> Callable[[str], bool]:
    """Build a predicate for an origin filter.

    "http://localhost:3000/*" and "http://localhost:3000/" match every origin
    starting with "http://localhost:3000"; anything else must match exactly.
    """
    if is_origin_pattern(value):
        prefix = value.replace(WILDCARD, "", 1)
        if prefix.endswith("/"):
            prefix = prefix[:-1]
        return lambda origin: origin.startswith(prefix)
    return lambda origin: origin == value


def filter_records(
    records: Iterable[Annotation],
    status: AnnotationStatus | None = None,
    origin: str | None = None,
) -> list[Annotation]:
    """Apply the status filter, then the origin filter."""
    filtered = list(records)
    if status is not None:
        filtered = [r for r in filtered if r.status == status]
    if origin:
        matches = origin_matcher(origin)
        filtered = [r for r in filtered if matches(r.origin)]
    return filtered


def sort_by_creation(records: list[Annotation]) -> list[Annotation]:
    """Stable ascending sort by the instant each record was created."""
    return sorted(records, key=lambda r: parse_timestamp(r.created_at))


def coarse_origin(origin: str) -> str | None:
    """Reduce an origin to scheme://host[:port], or None if unparseable."""
    try:
        parts = urlsplit(origin)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def origin_path(origin: str) -> str:
    """Path component of an origin, "/" when empty."""
    try:
        return urlsplit(origin).path or "/"
    except ValueError:
        return "/"


def group_by_project(records: Iterable[Annotation]) -> dict[str, list[Annotation]]:
    """Group records by coarse origin, keeping first-seen group order."""
    groups: dict[str, list[Annotation]] = {}
    for record in records:
        base_url = coarse_origin(record.origin)
        if base_url is None:
            continue
        groups.setdefault(base_url, []).append(record)
    return groups


def describe_projects(groups: dict[str, list[Annotation]]) -> list[ProjectGroup]:
    """Summarize each project group with sample paths and a suggested filter."""
    projects = []
    for base_url, members in groups.items():
        paths: list[str] = []
        for record in members:
            path = origin_path(record.origin)
            if path not in paths:
                paths.append(path)
            if len(paths) >= MAX_SAMPLE_PATHS:
                break
        projects.append(
            ProjectGroup(
                base_url=base_url,
                annotation_count=len(members),
                paths=paths,
                recommended_filter=f"{base_url}/*",
            )
        )
    return projects


def build_multi_project_warning(
    groups: dict[str, list[Annotation]],
    origin_filter: str | None,
) -> MultiProjectWarning | None:
    """Advisory for unfiltered queries spanning more than one project."""
    if len(groups) <= 1 or origin_filter:
        return None

    base_urls = list(groups)
    suggested = [f"{u}/*" for u in base_urls]
    logger.warning(
        f"MULTI-PROJECT WARNING: Found annotations from {len(base_urls)} different "
        f"projects. Use origin filter: {' or '.join(suggested)}"
    )
    return MultiProjectWarning(
        warning=(
            f"MULTI-PROJECT DETECTED: Found annotations from {len(base_urls)} "
            "different projects. This may cause cross-project contamination."
        ),
        recommendation="Use the 'origin' parameter to filter annotations for your current project.",
        suggested_filters=suggested,
        guidance=f'Example: Use origin: "{suggested[0]}" to filter for the first project.',
        projects_detected=base_urls,
    )


def paginate(
    items: list[Annotation], limit: int, offset: int
) -> tuple[list[Annotation], Pagination]:
    """Slice one page and compute its metadata."""
    total = len(items)
    page = items[offset : offset + limit]
    return page, Pagination(
        total=total,
        limit=limit,
        offset=offset,
        has_more=(offset + limit) < total,
    )


def run_query(
    records: list[Annotation],
    status: str | None = STATUS_ALL,
    origin: str | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> AnnotationPage:
    """Filter, group, and paginate an in-memory collection."""
    status_filter = validate_status_filter(status)
    validate_page(limit, offset)

    filtered = sort_by_creation(filter_records(records, status_filter, origin))
    groups = group_by_project(filtered)
    page, pagination = paginate(filtered, limit, offset)

    return AnnotationPage(
        annotations=[AnnotationSummary.from_annotation(r) for r in page],
        pagination=pagination,
        projects=describe_projects(groups),
        multi_project_warning=build_multi_project_warning(groups, origin),
        filter_applied=origin or None,
    )


class QueryEngine:
    """Read-only queries against a snapshot of the store.

    Queries see every completed mutation; a mutation still in the write queue
    may or may not be visible.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def list_annotations(
        self,
        status: str | None = STATUS_ALL,
        origin: str | None = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> AnnotationPage:
        """List annotations with filters, project grouping, and pagination.

        Args:
            status: A status value, or "all".
            origin: Exact origin, or a prefix pattern ending in "*" or "/".
            limit: Page size.
            offset: Number of filtered records to skip.

        Raises:
            ValidationError: If a parameter is malformed. Raised before the
                store is read.
        """
        validate_status_filter(status)
        validate_page(limit, offset)
        records = await self._store.load()
        return run_query(records, status=status, origin=origin, limit=limit, offset=offset)

    async def project_urls(self) -> list[str]:
        """Distinct coarse origins across the whole collection."""
        records = await self._store.load()
        return list(group_by_project(records))
