"""
Agent Core
==========

The agent drives one chat request from user text to final answer.

Agent Loop:
    User Message
         │
         ▼
    Validate (length, topic) ──── invalid ──► Refusal
         │
         ▼
    Resolve Devices (IPs, names, vendors)
         │
         ▼
    LLM Request with current tool catalog
         │
         ▼
    ┌─── Has Tool Calls? ───┐
    │                       │
    Yes                     No
    │                       │
    ▼                       ▼
    Execute Tools      Return Response
    │
    ▼
    Add Results to Conversation
    │
    └──► LLM Request ("continue or summarize") ──► ...

Each execution round finishes (every call succeeded or failed in isolation)
before the next model call. The loop is capped at max_tool_rounds; a model
that keeps asking for tools past the cap fails the request.

Agents hold no per-request state: the conversation lives in process_message,
so one Agent can serve concurrent requests.
"""

import time
from dataclasses import dataclass, field

from rpchat.agent.completion import CompletionClient, CompletionResponse, TokenUsage
from rpchat.agent.context import CONTINUE_INSTRUCTION, Conversation, ConversationTurn
from rpchat.agent.resolver import EntityResolver
from rpchat.agent.tools_executor import ToolCall, ToolExecutionResult, ToolExecutor
from rpchat.agent.validation import DEFAULT_MAX_MESSAGE_LENGTH, validate_message
from rpchat.errors import ModelCallError, RoundLimitExceededError
from rpchat.tools.catalog import ToolCatalog
from rpchat.utils.logger import Logger

logger = Logger("Agent")


@dataclass
class ChatResult:
    """
    Outcome of one chat request.

    Attributes:
        text: Final answer (or refusal) for the user
        session_id: Session the request belonged to
        tools_used: Every tool name invoked, in order, including failures
        execution_results: One entry per tool call
        usage: Token usage summed over all model calls
        rounds: Number of tool execution rounds
        refused: True if validation rejected the message
    """
    text: str
    session_id: str
    tools_used: list[str] = field(default_factory=list)
    execution_results: list[ToolExecutionResult] = field(default_factory=list)
    usage: TokenUsage | None = None
    rounds: int = 0
    refused: bool = False

    def to_dict(self) -> dict:
        return {
            "response": self.text,
            "session_id": self.session_id,
            "tools_used": list(self.tools_used),
            "execution_results": [result.to_dict() for result in self.execution_results],
            "usage": self.usage.to_dict() if self.usage else None,
            "rounds": self.rounds,
            "refused": self.refused,
        }


def _add_usage(total: TokenUsage | None, usage: TokenUsage | None) -> TokenUsage | None:
    if usage is None:
        return total
    return usage if total is None else total + usage


class Agent:
    """
    Runs chat requests through the tool-calling loop.

    Example:
        agent = Agent(completion, catalog, resolver, ToolExecutor(provider))

        result = await agent.process_message(
            "create backup for Enablis-Test-Palo",
            session_id="session_1"
        )
        print(result.text, result.tools_used)
    """

    # Default cap on tool execution rounds per request
    MAX_TOOL_ROUNDS = 10

    def __init__(
        self,
        completion: CompletionClient,
        catalog: ToolCatalog,
        resolver: EntityResolver,
        executor: ToolExecutor,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
        parallel_tool_calls: bool = False
    ):
        """
        Initialize the agent.

        Args:
            completion: Client for the completion API
            catalog: Source of the tool list for each model call
            resolver: Device resolver run before the first model call
            executor: Runs tool calls against the MCP server
            max_tool_rounds: Execution rounds allowed per request
            max_message_length: Longest accepted user message
            parallel_tool_calls: Run a round's calls concurrently
        """
        self.completion = completion
        self.catalog = catalog
        self.resolver = resolver
        self.executor = executor
        self.max_tool_rounds = max_tool_rounds
        self.max_message_length = max_message_length
        self.parallel_tool_calls = parallel_tool_calls

    async def process_message(
        self,
        text: str,
        session_id: str,
        history: Conversation | None = None
    ) -> ChatResult:
        """
        Process a user message and return the final answer.

        Args:
            text: The user's message
            session_id: Session identifier (for logs and the result)
            history: Optional earlier turns supplied by the caller

        Returns:
            ChatResult with the answer and every tool execution

        Raises:
            ModelCallError: If the completion API fails
            RoundLimitExceededError: If the model exceeds max_tool_rounds
        """
        started = time.monotonic()
        logger.info("Processing chat message", {"session_id": session_id, "length": len(text or "")})

        outcome = validate_message(text, self.max_message_length)
        if not outcome.is_valid:
            logger.info("Message rejected", {"session_id": session_id, "reason": outcome.reason})
            return ChatResult(text=outcome.reason or "", session_id=session_id, refused=True)

        resolution = await self.resolver.resolve(text)
        conversation: Conversation = list(history or [])
        conversation.append(ConversationTurn.user(text + resolution.context_block))

        tools_used: list[str] = []
        execution_results: list[ToolExecutionResult] = []
        rounds = 0

        try:
            response = await self._call_model(conversation)
            usage = _add_usage(None, response.usage)
            final_text = response.text

            while response.has_tool_calls:
                if rounds >= self.max_tool_rounds:
                    logger.warning("Reached max tool rounds", {"session_id": session_id, "rounds": rounds})
                    raise RoundLimitExceededError(self.max_tool_rounds)

                rounds += 1
                logger.info("Executing tool round", {
                    "session_id": session_id,
                    "round": rounds,
                    "tools": ",".join(call.name for call in response.tool_calls),
                })

                results = await self._execute_round(response.tool_calls)
                tools_used.extend(call.name for call in response.tool_calls)
                execution_results.extend(results)

                conversation.append(ConversationTurn.assistant(response.text, response.tool_calls))
                conversation.extend(
                    ConversationTurn.tool(result.tool_call_id, result.to_message_content())
                    for result in results
                )

                response = await self._call_model(
                    conversation + [ConversationTurn.user(CONTINUE_INSTRUCTION)]
                )
                usage = _add_usage(usage, response.usage)
                final_text = response.text or final_text

        except ModelCallError as e:
            logger.error("Chat message processing failed", e, {
                "session_id": session_id,
                "rounds": rounds,
                "elapsed_ms": round((time.monotonic() - started) * 1000),
            })
            raise

        logger.info("Chat message processed", {
            "session_id": session_id,
            "rounds": rounds,
            "tools_used": len(tools_used),
            "failed_tools": sum(1 for result in execution_results if not result.success),
            "elapsed_ms": round((time.monotonic() - started) * 1000),
        })

        return ChatResult(
            text=final_text,
            session_id=session_id,
            tools_used=tools_used,
            execution_results=execution_results,
            usage=usage,
            rounds=rounds,
        )

    async def _call_model(self, conversation: Conversation) -> CompletionResponse:
        return await self.completion.complete(conversation, self.catalog.get_snapshot())

    async def _execute_round(self, tool_calls: list[ToolCall]) -> list[ToolExecutionResult]:
        if self.parallel_tool_calls:
            return await self.executor.execute_parallel(tool_calls)
        return await self.executor.execute_all(tool_calls)
