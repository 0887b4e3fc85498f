"""
Errors
======

Exception types and error codes used across the assistant.

Failures below the request boundary are contained:
- CatalogSyncError    -> retried, then the fallback catalog is activated
- ResolutionError     -> converted to an empty device resolution
- ToolExecutionError  -> captured per tool call as a failed result

Failures at the request boundary reach the caller:
- ModelCallError (and RoundLimitExceededError) -> the request fails
- Validation problems -> a refusal message, not an exception

Messages on these exceptions are safe to show to end users. Underlying
provider or SDK exceptions are chained via ``__cause__`` for the logs only.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable codes attached to failed tool results."""
    TOOL_EXECUTION_FAILED = "TOOL_EXECUTION_FAILED"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    INVALID_ARGUMENTS = "INVALID_ARGUMENTS"
    TIMEOUT = "TIMEOUT"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_FOUND = "NOT_FOUND"
    SERVER_ERROR = "SERVER_ERROR"


class RPChatError(Exception):
    """Base class for all assistant errors."""


class CatalogSyncError(RPChatError):
    """A tool catalog sync attempt failed (unreachable or malformed)."""


class ProviderUnavailableError(CatalogSyncError):
    """The MCP server could not be reached or answered with an error."""


class ResolutionError(RPChatError):
    """Device resolution failed; always absorbed by the resolver."""


class ToolExecutionError(RPChatError):
    """A single tool call failed."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.TOOL_EXECUTION_FAILED):
        super().__init__(message)
        self.code = code


class ModelCallError(RPChatError):
    """The completion API failed or returned an unusable response."""


class RoundLimitExceededError(ModelCallError):
    """The model kept requesting tools past the configured round ceiling."""

    def __init__(self, max_rounds: int):
        super().__init__(
            f"Stopped after {max_rounds} tool rounds without a final answer"
        )
        self.max_rounds = max_rounds
