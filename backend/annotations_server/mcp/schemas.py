"""Argument schemas for the agent tools.

Each model doubles as the tool's JSON input schema (``additionalProperties:
false`` comes from ``extra="forbid"``).
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

StatusName = Literal["pending", "completed", "archived"]
StatusFilter = Literal["pending", "completed", "archived", "all"]


class ToolArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ReadAnnotationsArgs(ToolArgs):
    status: StatusFilter = Field("pending", description="Filter annotations by status")
    origin: str | None = Field(
        None,
        description=(
            "Filter by origin URL. Exact match (e.g. \"http://localhost:3000/dashboard\") "
            "or project match with a trailing \"/\" or \"*\" "
            "(e.g. \"http://localhost:3000/*\")"
        ),
    )
    limit: int = Field(50, ge=1, le=200, description="Maximum number of annotations to return")
    offset: int = Field(0, ge=0, description="Number of annotations to skip for pagination")


class AnnotationIdArgs(ToolArgs):
    id: str = Field(min_length=1, description="Annotation ID")


class DeleteProjectAnnotationsArgs(ToolArgs):
    origin_pattern: str = Field(
        min_length=1,
        description=(
            "Origin pattern to match annotations for deletion "
            "(e.g. \"http://localhost:3000/*\")"
        ),
    )
    confirm: bool = Field(
        False,
        description=(
            "Set to true to delete. Call without it first to see what would be deleted."
        ),
    )


class UpdateStatusArgs(ToolArgs):
    id: str = Field(min_length=1, description="Annotation ID to update")
    status: StatusName = Field(description="New status value")


class BulkUpdateStatusArgs(ToolArgs):
    # Items are checked one by one; malformed ids are reported, not rejected
    ids: list[Any] = Field(description="Annotation IDs to update")
    status: StatusName = Field(description="New status value for all annotations")


class ProjectContextArgs(ToolArgs):
    origin: str = Field(
        min_length=1,
        description="Full development URL (e.g. \"http://localhost:3000/dashboard\")",
    )
