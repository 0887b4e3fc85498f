"""
Agent System
============

The agent turns one chat request into a final answer:
1. Validates the message
2. Resolves device references into IDs for the prompt
3. Calls the model with the current tool catalog
4. Executes requested tools and feeds results back
5. Repeats until the model answers without tools

This module provides:
- Agent: the tool-calling loop
- CompletionClient: OpenAI-compatible completion API wrapper
- EntityResolver: device reference resolution
- ToolExecutor: isolated execution of tool calls
"""

from rpchat.agent.core import Agent, ChatResult
from rpchat.agent.completion import CompletionClient, CompletionResponse
from rpchat.agent.resolver import EntityResolver, Resolution, ResolvedEntity
from rpchat.agent.tools_executor import ToolCall, ToolExecutionResult, ToolExecutor

__all__ = [
    "Agent",
    "ChatResult",
    "CompletionClient",
    "CompletionResponse",
    "EntityResolver",
    "Resolution",
    "ResolvedEntity",
    "ToolCall",
    "ToolExecutionResult",
    "ToolExecutor",
]
