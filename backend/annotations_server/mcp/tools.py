"""Agent tools for reading and resolving annotations.

``AnnotationTools`` holds the tool logic as plain async methods over an
``AnnotationHub`` so it can be called directly (HTTP API, tests) or wrapped in
an MCP server (see ``annotations_server.mcp.server``).

Every call returns a JSON-ready envelope::

    {"tool": name, "status": "success" | "error", "data" | "error": ..., "timestamp": ...}
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from annotations_server.errors import AnnotationError, NotFoundError, ValidationError
from annotations_server.hub import AnnotationHub
from annotations_server.mcp.schemas import (
    AnnotationIdArgs,
    BulkUpdateStatusArgs,
    DeleteProjectAnnotationsArgs,
    ProjectContextArgs,
    ReadAnnotationsArgs,
    UpdateStatusArgs,
)
from annotations_server.models.annotation import now_iso
from annotations_server.services.project_context import build_project_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolSpec:
    """A named tool: description, argument model, and handler."""

    name: str
    description: str
    args_model: type[BaseModel]
    handler: Callable[[Any], Awaitable[Any]]

    @property
    def input_schema(self) -> dict[str, Any]:
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        return schema


def format_validation_error(error: PydanticValidationError) -> str:
    """Flatten pydantic errors into one message naming each failed constraint."""
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{location}: {err['msg']}")
    return "; ".join(parts)


class AnnotationTools:
    """The tool-call façade over one AnnotationHub."""

    def __init__(self, hub: AnnotationHub) -> None:
        self._hub = hub
        self._specs = {
            spec.name: spec
            for spec in [
                ToolSpec(
                    "read_annotations",
                    "Retrieves annotations (user feedback pinned to pages of a local dev "
                    "site) with pagination. Returns a has_attachment flag instead of the "
                    "attachment itself. When annotations span several projects the response "
                    "carries a multi_project_warning: call again with the 'origin' filter "
                    "(e.g. \"http://localhost:3000/*\") for the project you are working on.",
                    ReadAnnotationsArgs,
                    self.read_annotations,
                ),
                ToolSpec(
                    "delete_annotation",
                    "Permanently removes one annotation after its requested change has been "
                    "implemented. Prefer delete_project_annotations when finishing a whole "
                    "project. Never delete annotations that still need work.",
                    AnnotationIdArgs,
                    self.delete_annotation,
                ),
                ToolSpec(
                    "delete_project_annotations",
                    "Batch deletes every annotation whose origin matches a pattern. Call "
                    "first without confirm to preview the count, then with confirm=true.",
                    DeleteProjectAnnotationsArgs,
                    self.delete_project_annotations,
                ),
                ToolSpec(
                    "update_annotation_status",
                    "Sets the status of one annotation: 'completed' once implemented, "
                    "'archived' when no longer relevant, 'pending' to reopen it.",
                    UpdateStatusArgs,
                    self.update_annotation_status,
                ),
                ToolSpec(
                    "bulk_update_status",
                    "Sets the status of many annotations in one operation. Each id is "
                    "reported as updated or failed; one bad id does not stop the others.",
                    BulkUpdateStatusArgs,
                    self.bulk_update_status,
                ),
                ToolSpec(
                    "get_annotation_attachment",
                    "Retrieves the attachment (e.g. screenshot) captured with an "
                    "annotation. Only call this when read_annotations reports "
                    "has_attachment=true and you need the visual context.",
                    AnnotationIdArgs,
                    self.get_annotation_attachment,
                ),
                ToolSpec(
                    "get_project_context",
                    "Infers project hints from a development URL: likely framework from "
                    "the port, working directory and package.json summary, and the origin "
                    "filter to use for this project.",
                    ProjectContextArgs,
                    self.get_project_context,
                ),
            ]
        }

    @property
    def specs(self) -> list[ToolSpec]:
        return list(self._specs.values())

    def get_spec(self, name: str) -> ToolSpec:
        """Look up a tool by name.

        Raises:
            ValidationError: If no tool has this name.
        """
        spec = self._specs.get(name)
        if spec is None:
            raise ValidationError(f"Unknown tool: {name}")
        return spec

    async def call(self, name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """Validate arguments, run a tool, and wrap the outcome in an envelope.

        Validation and not-found failures become error envelopes. Storage
        failures propagate.

        Raises:
            ValidationError: If the tool name is unknown.
        """
        spec = self.get_spec(name)
        try:
            args = spec.args_model.model_validate(arguments or {})
        except PydanticValidationError as e:
            return self._error(name, ValidationError(format_validation_error(e)))

        try:
            data = await spec.handler(args)
        except (ValidationError, NotFoundError) as e:
            return self._error(name, e)

        return {
            "tool": name,
            "status": "success",
            "data": data,
            "timestamp": now_iso(),
        }

    def _error(self, name: str, error: AnnotationError) -> dict[str, Any]:
        logger.info(f"Tool {name} rejected: {error}")
        return {
            "tool": name,
            "status": "error",
            "error": {"type": type(error).__name__, "message": str(error)},
            "timestamp": now_iso(),
        }

    # ==================== Tool handlers ====================

    async def read_annotations(self, args: ReadAnnotationsArgs) -> dict[str, Any]:
        page = await self._hub.query.list_annotations(
            status=args.status,
            origin=args.origin,
            limit=args.limit,
            offset=args.offset,
        )
        return page.model_dump(mode="json")

    async def delete_annotation(self, args: AnnotationIdArgs) -> dict[str, Any]:
        result = await self._hub.annotations.delete(args.id)
        return result.model_dump(mode="json")

    async def delete_project_annotations(
        self, args: DeleteProjectAnnotationsArgs
    ) -> dict[str, Any]:
        result = await self._hub.bulk.delete_matching(args.origin_pattern, args.confirm)
        return result.model_dump(mode="json", exclude_none=True)

    async def update_annotation_status(self, args: UpdateStatusArgs) -> dict[str, Any]:
        change = await self._hub.annotations.update_status(args.id, args.status)
        return change.model_dump(mode="json")

    async def bulk_update_status(self, args: BulkUpdateStatusArgs) -> dict[str, Any]:
        result = await self._hub.bulk.update_status(args.ids, args.status)
        return result.model_dump(mode="json")

    async def get_annotation_attachment(self, args: AnnotationIdArgs) -> dict[str, Any]:
        attachment = await self._hub.annotations.get_attachment(args.id)
        if not attachment:
            return {
                "annotation_id": args.id,
                "attachment": None,
                "message": "No attachment available for this annotation",
            }
        return {
            "annotation_id": args.id,
            "attachment": attachment,
            "message": "Attachment retrieved successfully",
        }

    async def get_project_context(self, args: ProjectContextArgs) -> dict[str, Any]:
        project_urls = await self._hub.query.project_urls()
        context = build_project_context(args.origin, project_urls)
        return context.model_dump(mode="json")
