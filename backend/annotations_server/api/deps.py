"""FastAPI dependencies resolving the per-app hub and tools."""

from fastapi import Request

from annotations_server.hub import AnnotationHub
from annotations_server.mcp.tools import AnnotationTools


def get_hub(request: Request) -> AnnotationHub:
    """The hub opened by the application lifespan."""
    hub = getattr(request.app.state, "hub", None)
    if hub is None:
        raise RuntimeError("Annotation hub not initialized. Start the app through its lifespan.")
    return hub


def get_tools(request: Request) -> AnnotationTools:
    """Agent tools bound to the application's hub."""
    tools = getattr(request.app.state, "tools", None)
    if tools is None:
        tools = AnnotationTools(get_hub(request))
        request.app.state.tools = tools
    return tools
