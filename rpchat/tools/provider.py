"""
MCP Provider Client
===================

Async HTTP client for the Restorepoint MCP server.

Endpoints used:
    GET  /health         - liveness and tool count
    GET  /tools          - tool definitions ({"success": true, "data": [...]})
    GET  /info           - server info; its "tools" list is the fallback source
    POST /tools/execute  - {"tool": name, "arguments": {...}}

API Notes:
- Uses httpx for async HTTP requests, one pooled client per process
- Every request carries the configured timeout
- list_tools raises ProviderUnavailableError so the catalog can retry
- execute never raises; failures come back as a failed ToolResult with a
  sanitized message, the details go to the log
"""

import json
from typing import Any

import httpx

from rpchat import __version__
from rpchat.errors import ErrorCode, ProviderUnavailableError
from rpchat.tools import ToolError, ToolResult
from rpchat.utils.config import ProviderConfig
from rpchat.utils.logger import Logger

logger = Logger("Provider")

# Tool the server exposes for listing managed devices
LIST_DEVICES_TOOL = "list_devices"


def describe_http_error(error: Exception, operation: str, base_url: str) -> tuple[ErrorCode, str]:
    """
    Map an httpx exception to an error code and a message safe for users.

    Args:
        error: The exception raised by httpx
        operation: What was being attempted (e.g. "tool execution")
        base_url: The server URL, for connection errors

    Returns:
        (code, message) tuple
    """
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 401:
            return ErrorCode.AUTHENTICATION_FAILED, f"Authentication failed during {operation}"
        if status == 403:
            return ErrorCode.AUTHENTICATION_FAILED, f"Access forbidden during {operation}"
        if status == 404:
            return ErrorCode.NOT_FOUND, f"Endpoint not found during {operation}"
        if status == 429:
            return ErrorCode.RATE_LIMITED, f"Rate limit exceeded during {operation}"
        if status >= 500:
            return ErrorCode.SERVER_ERROR, f"MCP server error during {operation}: {status}"
        return ErrorCode.EXECUTION_ERROR, f"HTTP {status} error during {operation}"

    if isinstance(error, httpx.TimeoutException):
        return ErrorCode.TIMEOUT, f"Timeout during {operation}"
    if isinstance(error, httpx.ConnectError):
        return ErrorCode.PROVIDER_UNAVAILABLE, f"MCP server not reachable at {base_url}"
    if isinstance(error, httpx.RequestError):
        return ErrorCode.PROVIDER_UNAVAILABLE, f"Network error during {operation}"

    return ErrorCode.EXECUTION_ERROR, f"Unexpected error during {operation}"


def _unwrap_envelope(payload: Any) -> Any:
    """Strip the server's {"success": true, "data": ...} wrapper if present."""
    if isinstance(payload, dict) and payload.get("success") and "data" in payload:
        return payload["data"]
    return payload


class ToolProviderClient:
    """
    Client for listing and executing tools on the MCP server.

    Example:
        provider = ToolProviderClient(config.provider)

        tools = await provider.list_tools()
        result = await provider.execute("get_device", '{"deviceId": "42"}')
        if result.success:
            print(result.data)

        await provider.close()
    """

    def __init__(
        self,
        config: ProviderConfig,
        client: httpx.AsyncClient | None = None
    ):
        """
        Initialize the provider client.

        Args:
            config: Server location and timeout
            client: Optional preconfigured httpx client (tests pass one
                built on httpx.MockTransport)
        """
        self.base_url = config.base_url
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=config.timeout_seconds,
            headers={
                "Content-Type": "application/json",
                "User-Agent": f"rpchat/{__version__}",
            },
        )

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def _get_json(self, path: str) -> Any:
        response = await self._client.get(path)
        response.raise_for_status()
        return response.json()

    async def health_check(self) -> dict:
        """
        Check MCP server health.

        Returns:
            The server's health document (status, uptime, tools, ...)

        Raises:
            ProviderUnavailableError: If the server cannot be reached
        """
        try:
            health = _unwrap_envelope(await self._get_json("/health"))
        except (httpx.HTTPError, ValueError) as e:
            _, message = describe_http_error(e, "health check", self.base_url)
            raise ProviderUnavailableError(message) from e

        if not isinstance(health, dict):
            raise ProviderUnavailableError("Unexpected health check response")
        return health

    async def list_tools(self) -> list[dict]:
        """
        Fetch raw tool definitions from the server.

        Tries /tools first and falls back to the tool list in /info.

        Returns:
            Raw tool entries (name, description, parameters or inputSchema)

        Raises:
            ProviderUnavailableError: If neither endpoint yields a tool list
        """
        try:
            payload = await self._get_json("/tools")
            if isinstance(payload, dict) and payload.get("success") and isinstance(payload.get("data"), list):
                return payload["data"]

            logger.debug("Unexpected /tools response, trying /info")
            info = await self._get_json("/info")

        except (httpx.HTTPError, ValueError) as e:
            _, message = describe_http_error(e, "get available tools", self.base_url)
            logger.warning("Failed to list tools", {"error": message})
            raise ProviderUnavailableError(message) from e

        tools = info.get("tools") if isinstance(info, dict) else None
        if not isinstance(tools, list):
            raise ProviderUnavailableError("MCP server returned no tool list")
        return tools

    async def execute(self, name: str, arguments_json: str) -> ToolResult:
        """
        Execute a tool on the server.

        Args:
            name: Tool name
            arguments_json: JSON object string with the tool arguments

        Returns:
            ToolResult; failures are reported, not raised
        """
        try:
            arguments = json.loads(arguments_json) if arguments_json else {}
        except json.JSONDecodeError:
            return ToolResult.failure(
                ErrorCode.INVALID_ARGUMENTS,
                f"Arguments for {name} are not valid JSON"
            )
        if not isinstance(arguments, dict):
            return ToolResult.failure(
                ErrorCode.INVALID_ARGUMENTS,
                f"Arguments for {name} must be a JSON object"
            )

        try:
            response = await self._client.post(
                "/tools/execute",
                json={"tool": name, "arguments": arguments}
            )
            response.raise_for_status()
            payload = response.json()

        except (httpx.HTTPError, ValueError) as e:
            code, message = describe_http_error(e, "tool execution", self.base_url)
            logger.error(f"Failed to execute tool: {name}", e, {"code": code.value})
            return ToolResult.failure(code, message)

        return self._to_tool_result(name, payload)

    def _to_tool_result(self, name: str, payload: Any) -> ToolResult:
        if not isinstance(payload, dict):
            return ToolResult.failure(ErrorCode.EXECUTION_ERROR, f"Unexpected response from {name}")

        metadata = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else None

        if payload.get("success"):
            return ToolResult(success=True, data=payload.get("data"), metadata=metadata)

        raw_error = payload.get("error")
        if isinstance(raw_error, dict):
            code_value = raw_error.get("code")
            message = raw_error.get("message") or "Tool execution failed"
        else:
            code_value = None
            message = str(raw_error) if raw_error else "Tool execution failed"

        try:
            code = ErrorCode(code_value)
        except ValueError:
            code = ErrorCode.TOOL_EXECUTION_FAILED

        logger.warning(f"Tool {name} returned an error", {"code": code_value, "message": message})
        return ToolResult(
            success=False,
            error=ToolError(code=code, message=message),
            metadata=metadata
        )

    async def list_entities(self) -> ToolResult:
        """
        List every managed device.

        The payload shape is not stable across server versions; callers
        must unwrap it defensively.
        """
        return await self.execute(LIST_DEVICES_TOOL, "{}")
