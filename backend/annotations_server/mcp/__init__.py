"""Agent-facing tool façade."""

from annotations_server.mcp.tools import AnnotationTools, ToolSpec

__all__ = ["AnnotationTools", "ToolSpec"]
