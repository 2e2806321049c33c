"""Request/response access to the agent tools."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel

from annotations_server.api.deps import get_tools
from annotations_server.errors import ValidationError
from annotations_server.mcp.tools import AnnotationTools

router = APIRouter()


class ToolInfo(BaseModel):
    name: str
    description: str
    input_schema: dict[str, Any]


class ToolsResponse(BaseModel):
    tools: list[ToolInfo]


@router.get("/tools", response_model=ToolsResponse)
async def list_tools(tools: AnnotationTools = Depends(get_tools)) -> ToolsResponse:
    """List available tools with their input schemas."""
    return ToolsResponse(
        tools=[
            ToolInfo(name=s.name, description=s.description, input_schema=s.input_schema)
            for s in tools.specs
        ]
    )


@router.post("/tools/{tool_name}")
async def call_tool(
    tool_name: str,
    arguments: dict[str, Any] | None = Body(None),
    tools: AnnotationTools = Depends(get_tools),
) -> dict[str, Any]:
    """Invoke a tool. Rejected arguments come back as an error envelope."""
    try:
        tools.get_spec(tool_name)
    except ValidationError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return await tools.call(tool_name, arguments)
