"""
Tool Executor
=============

Runs the tool calls the model requested against the MCP server.

Each call is isolated: a bad argument string, a server error, a timeout or
an unexpected exception becomes a failed ToolExecutionResult for that call
only. The rest of the round carries on, and so does the agent loop.

Tool Execution Round:
    1. Model response carries tool calls
    2. Executor runs each one (in order, or concurrently)
    3. Every call yields exactly one result, success or failure
    4. Results become tool turns in the conversation
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any

from rpchat.errors import ErrorCode, ToolExecutionError
from rpchat.tools import ToolError, ToolResult
from rpchat.tools.provider import ToolProviderClient
from rpchat.utils.logger import Logger

logger = Logger("ToolExecutor")


@dataclass
class ToolCall:
    """
    A tool invocation requested by the model.

    Attributes:
        id: The tool call ID (for matching results)
        name: The tool name
        arguments_json: Arguments as the model produced them (a JSON string)
    """
    id: str
    name: str
    arguments_json: str = "{}"

    def arguments(self) -> dict[str, Any]:
        """
        Parse the arguments.

        Raises:
            ToolExecutionError: If they are not a JSON object
        """
        try:
            parsed = json.loads(self.arguments_json or "{}")
        except json.JSONDecodeError as e:
            raise ToolExecutionError(
                f"Arguments for {self.name} are not valid JSON",
                ErrorCode.INVALID_ARGUMENTS
            ) from e
        if not isinstance(parsed, dict):
            raise ToolExecutionError(
                f"Arguments for {self.name} must be a JSON object",
                ErrorCode.INVALID_ARGUMENTS
            )
        return parsed

    def to_openai_tool_call(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments_json},
        }


@dataclass
class ToolExecutionResult:
    """
    Result of executing one tool call.

    Attributes:
        tool_call_id: The originating tool call ID
        tool_name: The tool name
        success: Whether the call succeeded
        data: Result payload on success
        error: Sanitized error on failure
    """
    tool_call_id: str
    tool_name: str
    success: bool
    data: Any = None
    error: ToolError | None = None

    @classmethod
    def from_tool_result(cls, tool_call: ToolCall, result: ToolResult) -> "ToolExecutionResult":
        error = result.error
        if not result.success and error is None:
            error = ToolError(ErrorCode.TOOL_EXECUTION_FAILED, "Tool execution failed")
        return cls(
            tool_call_id=tool_call.id,
            tool_name=tool_call.name,
            success=result.success,
            data=result.data if result.success else None,
            error=None if result.success else error,
        )

    def to_dict(self) -> dict:
        result: dict[str, Any] = {
            "tool_call_id": self.tool_call_id,
            "tool_name": self.tool_name,
            "success": self.success,
        }
        if self.success:
            result["data"] = self.data
        elif self.error is not None:
            result["error"] = self.error.to_dict()
        return result

    def to_message_content(self) -> str:
        """Tool-turn content for the LLM: the success flag plus data or error."""
        payload = self.to_dict()
        del payload["tool_call_id"], payload["tool_name"]
        return json.dumps(payload, default=str)


class ToolExecutor:
    """
    Executes model-requested tool calls through the provider.

    Example:
        executor = ToolExecutor(provider)

        results = await executor.execute_all(response.tool_calls)
        for result in results:
            conversation.append(
                ConversationTurn.tool(result.tool_call_id, result.to_message_content())
            )
    """

    def __init__(self, provider: ToolProviderClient):
        self.provider = provider

    async def execute_one(self, tool_call: ToolCall) -> ToolExecutionResult:
        """
        Execute a single tool call. Never raises.

        Args:
            tool_call: The tool call to execute

        Returns:
            ToolExecutionResult for this call
        """
        logger.info(f"Executing tool: {tool_call.name}")

        try:
            tool_call.arguments()
            result = await self.provider.execute(tool_call.name, tool_call.arguments_json)
        except ToolExecutionError as e:
            logger.warning(f"Tool {tool_call.name} rejected: {e}")
            return ToolExecutionResult(
                tool_call_id=tool_call.id,
                tool_name=tool_call.name,
                success=False,
                error=ToolError(e.code, str(e)),
            )
        except Exception as e:
            logger.error(f"Tool execution failed: {tool_call.name}", e)
            return ToolExecutionResult(
                tool_call_id=tool_call.id,
                tool_name=tool_call.name,
                success=False,
                error=ToolError(ErrorCode.EXECUTION_ERROR, f"Tool {tool_call.name} failed to execute"),
            )

        if result.success:
            logger.debug(f"Tool {tool_call.name} succeeded")
        else:
            logger.warning(f"Tool {tool_call.name} failed", {
                "code": result.error.code.value if result.error else None,
            })

        return ToolExecutionResult.from_tool_result(tool_call, result)

    async def execute_all(self, tool_calls: list[ToolCall]) -> list[ToolExecutionResult]:
        """
        Execute tool calls one after another.

        Side effects and log lines appear in request order.

        Returns:
            One result per call, in input order
        """
        results = []
        for tool_call in tool_calls:
            results.append(await self.execute_one(tool_call))
        return results

    async def execute_parallel(self, tool_calls: list[ToolCall]) -> list[ToolExecutionResult]:
        """
        Execute tool calls concurrently.

        Returns:
            One result per call, in input order
        """
        results = await asyncio.gather(*(self.execute_one(tc) for tc in tool_calls))
        return list(results)
