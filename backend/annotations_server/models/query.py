"""Pydantic models for annotation list queries."""

from pydantic import BaseModel

from annotations_server.models.annotation import AnnotationSummary


class Pagination(BaseModel):
    """Pagination metadata for a page of results."""

    total: int
    limit: int
    offset: int
    has_more: bool


class ProjectGroup(BaseModel):
    """Annotations sharing one coarse origin (scheme + host)."""

    base_url: str
    annotation_count: int
    paths: list[str]
    recommended_filter: str


class MultiProjectWarning(BaseModel):
    """Advisory attached when an unfiltered query spans several projects."""

    warning: str
    recommendation: str
    suggested_filters: list[str]
    guidance: str
    projects_detected: list[str]


class AnnotationPage(BaseModel):
    """One page of filtered annotations plus grouping context."""

    annotations: list[AnnotationSummary]
    pagination: Pagination
    projects: list[ProjectGroup]
    multi_project_warning: MultiProjectWarning | None = None
    filter_applied: str | None = None
