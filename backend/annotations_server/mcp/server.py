"""In-process MCP server exposing the annotation tools to an agent."""

import json
import logging
from typing import Any

from claude_agent_sdk import ClaudeAgentOptions, create_sdk_mcp_server, tool

from annotations_server import __version__
from annotations_server.hub import AnnotationHub
from annotations_server.mcp.tools import AnnotationTools, ToolSpec

logger = logging.getLogger(__name__)

MCP_SERVER_NAME = "annotations"

# Max response size to avoid tool result overflow in the agent
MAX_RESPONSE_SIZE = 30_000


def _render(envelope: dict[str, Any], compact: bool = False) -> str:
    if compact:
        return json.dumps(envelope, separators=(",", ":"))
    return json.dumps(envelope, indent=2)


def _shrink(envelope: dict[str, Any]) -> dict[str, Any]:
    """Drop payload until the envelope fits, largest offenders first."""
    data = envelope.get("data")
    if not isinstance(data, dict):
        return {**envelope, "data": None, "truncated": True}

    envelope = {**envelope, "data": dict(data), "truncated": True}
    data = envelope["data"]

    # Attachment first
    if data.get("attachment") is not None:
        size = len(json.dumps(data["attachment"]))
        data["attachment"] = None
        data["attachment_truncated"] = size
        data["message"] = (
            f"Attachment omitted: {size} characters exceeds the "
            f"{MAX_RESPONSE_SIZE} character tool response limit"
        )
        if len(_render(envelope, compact=True)) <= MAX_RESPONSE_SIZE:
            return envelope

    # Then trim list fields from the end, keeping at least one item
    for key, value in list(data.items()):
        if not isinstance(value, list) or len(value) <= 1:
            continue
        items = list(value)
        while len(_render(envelope, compact=True)) > MAX_RESPONSE_SIZE and len(items) > 1:
            items = items[:-1]
            data[key] = items
            data[f"{key}_truncated"] = len(value)
        if len(_render(envelope, compact=True)) <= MAX_RESPONSE_SIZE:
            return envelope

    if len(_render(envelope, compact=True)) > MAX_RESPONSE_SIZE:
        envelope["data"] = None
    return envelope


def to_tool_result(envelope: dict[str, Any]) -> dict[str, Any]:
    """Render an envelope as MCP text content within MAX_RESPONSE_SIZE.

    Oversized envelopes are rendered compactly first. If that is still too
    large the payload is truncated progressively (attachment, then trailing
    list items, then the whole data field) and the envelope is marked with
    ``"truncated": true``.
    """
    text = _render(envelope)
    if len(text) > MAX_RESPONSE_SIZE:
        text = _render(envelope, compact=True)
    if len(text) > MAX_RESPONSE_SIZE:
        logger.warning(
            f"Tool {envelope.get('tool')} response is {len(text)} characters, truncating"
        )
        text = _render(_shrink(envelope), compact=True)
    return {
        "content": [{"type": "text", "text": text}],
        "is_error": envelope.get("status") == "error",
    }


def _bind(tools: AnnotationTools, spec: ToolSpec):
    @tool(spec.name, spec.description, spec.input_schema)
    async def run(args: dict[str, Any]) -> dict[str, Any]:
        return to_tool_result(await tools.call(spec.name, args))

    return run


def create_annotation_tools(hub: AnnotationHub):
    """Create an SDK MCP server with every annotation tool bound to a hub.

    Args:
        hub: The hub whose store the tools read and mutate.

    Returns:
        SDK MCP server config for ``ClaudeAgentOptions.mcp_servers``.
    """
    tools = AnnotationTools(hub)
    return create_sdk_mcp_server(
        name=MCP_SERVER_NAME,
        version=__version__,
        tools=[_bind(tools, spec) for spec in tools.specs],
    )


def annotation_agent_options(hub: AnnotationHub, **kwargs: Any) -> ClaudeAgentOptions:
    """Agent options with the annotation tools mounted in-process.

    Only the annotation tools are allowed unless ``allowed_tools`` is passed.
    Remaining keyword arguments go to ``ClaudeAgentOptions`` unchanged.
    """
    allowed_tools = kwargs.pop(
        "allowed_tools",
        [f"mcp__{MCP_SERVER_NAME}__{spec.name}" for spec in AnnotationTools(hub).specs],
    )
    return ClaudeAgentOptions(
        mcp_servers={MCP_SERVER_NAME: create_annotation_tools(hub)},
        allowed_tools=allowed_tools,
        **kwargs,
    )
