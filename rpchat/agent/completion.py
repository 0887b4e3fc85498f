"""
Completion Client
=================

Thin wrapper around an OpenAI-compatible chat completion endpoint (z.ai's
GLM models by default) that speaks in this package's types.

One call = one model turn:
    conversation + tool catalog  ->  text, tool calls, token usage

Tool choice is always "auto"; the agent never forces a tool. SDK errors are
mapped to ModelCallError with a message safe to show to users; the original
exception is chained for the logs.
"""

from dataclasses import dataclass, field
from typing import Any

import openai
from openai import AsyncOpenAI

from rpchat.agent.context import Conversation, SYSTEM_PROMPT, to_openai_messages
from rpchat.agent.tools_executor import ToolCall
from rpchat.errors import ModelCallError
from rpchat.tools.catalog import CatalogSnapshot
from rpchat.utils.config import AIConfig
from rpchat.utils.logger import Logger

logger = Logger("Completion")


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_dict(self) -> dict:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class CompletionResponse:
    """
    One model turn.

    Attributes:
        text: Assistant text (may be empty when only tools are requested)
        tool_calls: Tools the model wants executed, in order
        usage: Token usage, if the API reported it
    """
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: TokenUsage | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


def _sanitize_error(error: Exception) -> str:
    if isinstance(error, openai.AuthenticationError):
        return "Invalid AI API key"
    if isinstance(error, openai.RateLimitError):
        return "AI API rate limit exceeded"
    if isinstance(error, openai.APITimeoutError):
        return "AI API request timed out"
    if isinstance(error, openai.APIConnectionError):
        return "AI API not reachable"
    if isinstance(error, openai.APIStatusError) and error.status_code >= 500:
        return "AI API server error"
    return "AI service failed"


def parse_response(response: Any) -> CompletionResponse:
    """
    Convert an SDK chat completion into a CompletionResponse.

    Raises:
        ModelCallError: If the response has no message
    """
    choices = getattr(response, "choices", None) or []
    message = getattr(choices[0], "message", None) if choices else None
    if message is None:
        raise ModelCallError("No response from the AI service")

    tool_calls = [
        ToolCall(
            id=call.id,
            name=call.function.name,
            arguments_json=call.function.arguments or "{}",
        )
        for call in (message.tool_calls or [])
    ]

    usage = None
    if getattr(response, "usage", None) is not None:
        usage = TokenUsage(
            prompt_tokens=response.usage.prompt_tokens or 0,
            completion_tokens=response.usage.completion_tokens or 0,
            total_tokens=response.usage.total_tokens or 0,
        )

    return CompletionResponse(text=message.content or "", tool_calls=tool_calls, usage=usage)


class CompletionClient:
    """
    Sends conversations to the completion API.

    Example:
        client = CompletionClient(config.ai)
        response = await client.complete(conversation, catalog.get_snapshot())

        for call in response.tool_calls:
            print(call.name, call.arguments_json)
    """

    def __init__(
        self,
        config: AIConfig,
        client: AsyncOpenAI | None = None,
        system_prompt: str = SYSTEM_PROMPT
    ):
        """
        Initialize the client.

        Args:
            config: Endpoint, model and sampling settings
            client: Optional preconfigured SDK client
            system_prompt: Prepended to every conversation
        """
        self.model = config.model
        self.temperature = config.temperature
        self.max_tokens = config.max_tokens
        self.system_prompt = system_prompt
        self.openai = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            max_retries=0,
        )

        logger.info(f"Completion client ready with model: {self.model}")

    async def complete(self, conversation: Conversation, catalog: CatalogSnapshot) -> CompletionResponse:
        """
        Run one model turn.

        Args:
            conversation: Turns so far (without the system prompt)
            catalog: Tools the model may request

        Returns:
            The parsed model turn

        Raises:
            ModelCallError: On any API failure or unusable response
        """
        messages = to_openai_messages(conversation, self.system_prompt)
        tools = catalog.to_openai_tools()

        request: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            request["tools"] = tools
            request["tool_choice"] = "auto"

        logger.debug("Sending completion request", {"messages": len(messages), "tools": len(tools)})

        try:
            response = await self.openai.chat.completions.create(**request)
        except openai.OpenAIError as e:
            message = _sanitize_error(e)
            logger.error("Completion request failed", e, {"reported_as": message})
            raise ModelCallError(message) from e

        result = parse_response(response)
        logger.info("Received model response", {
            "has_text": bool(result.text),
            "tool_calls": len(result.tool_calls),
            "total_tokens": result.usage.total_tokens if result.usage else None,
        })
        return result

    async def close(self) -> None:
        await self.openai.close()
