"""
MCP Tools
=========

Types for tools exposed by the remote Restorepoint MCP server.

The server owns the tools: it decides which exist, describes each with a
JSON schema and executes them. This package only mirrors that view:

1. provider.py - HTTP client for the MCP server (list, execute, health)
2. catalog.py  - cached, normalized, self-refreshing tool catalog
3. fallback.py - hand-maintained tools used when the server is unreachable

This module provides:
- ToolDefinition: one normalized tool (name, description, parameters)
- ToolResult: standardized outcome of a remote tool execution
- ToolError: structured, sanitized failure details
"""

import copy
import json
from dataclasses import dataclass, field
from typing import Any

from rpchat.errors import ErrorCode


@dataclass(frozen=True)
class ToolDefinition:
    """
    A tool the AI may call, with a normalized parameter schema.

    Attributes:
        name: Unique identifier within a catalog snapshot
        description: What the tool does (shown to the AI)
        parameters: JSON schema with exactly type/properties/required
    """
    name: str
    description: str
    parameters: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """The normalized wire shape: name, description, parameters (a copy)."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": copy.deepcopy(self.parameters),
        }

    def to_openai_function(self) -> dict:
        """Convert to the OpenAI function calling format."""
        return {
            "type": "function",
            "function": self.to_dict(),
        }


@dataclass(frozen=True)
class ToolError:
    """
    Sanitized error details for a failed tool call.

    Attributes:
        code: Error taxonomy code
        message: Human-readable message (never a raw provider exception)
    """
    code: ErrorCode
    message: str

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}


@dataclass
class ToolResult:
    """
    Standardized result from a remote tool execution.

    Attributes:
        success: Whether the tool executed successfully
        data: The result data (shape varies by tool)
        error: Error details if success is False
        metadata: Optional execution metadata from the server
    """
    success: bool
    data: Any = None
    error: ToolError | None = None
    metadata: dict | None = None

    @classmethod
    def failure(cls, code: ErrorCode, message: str) -> "ToolResult":
        return cls(success=False, error=ToolError(code=code, message=message))

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error.to_dict()
        if self.metadata:
            result["metadata"] = self.metadata
        return result

    def to_message(self) -> str:
        """Format as tool-turn content for the LLM."""
        return json.dumps(self.to_dict(), default=str)


__all__ = [
    "ToolDefinition",
    "ToolError",
    "ToolResult",
]
