"""Agent bindings: tools exposing the document pipeline to an agent runtime."""

from ragbot.core.agentic_system.tools import create_document_tool, create_query_tool

__all__ = ["create_document_tool", "create_query_tool"]
