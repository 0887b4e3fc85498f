"""
Shared test doubles.

The fakes mirror the public surface of ToolProviderClient and
CompletionClient closely enough for the catalog, resolver, executor and
agent to run against them without any network.
"""

import asyncio
import copy
import json
from datetime import datetime, timedelta, timezone

import pytest

from rpchat.agent.completion import CompletionResponse, TokenUsage
from rpchat.agent.tools_executor import ToolCall
from rpchat.tools import ToolResult
from rpchat.tools.catalog import CatalogSnapshot, CatalogSource, ToolCatalog
from rpchat.tools.fallback import FALLBACK_TOOLS
from rpchat.utils.config import CatalogConfig


class FakeProvider:
    """In-memory stand-in for ToolProviderClient."""

    def __init__(self, tools=None, devices=None):
        self.tools = tools if tools is not None else []
        self.list_tools_error: Exception | None = None
        self.list_tools_calls = 0
        # When set, list_tools waits on it before answering
        self.gate: asyncio.Event | None = None

        self.devices = devices if devices is not None else []
        self.entities_result: ToolResult | None = None
        self.entities_error: Exception | None = None
        self.list_entities_calls = 0

        # tool name -> ToolResult to return or Exception to raise
        self.results: dict = {}
        self.executed: list[tuple[str, str]] = []

    async def list_tools(self):
        self.list_tools_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.list_tools_error is not None:
            raise self.list_tools_error
        return copy.deepcopy(self.tools)

    async def list_entities(self):
        self.list_entities_calls += 1
        if self.entities_error is not None:
            raise self.entities_error
        if self.entities_result is not None:
            return self.entities_result
        return ToolResult(success=True, data=copy.deepcopy(self.devices))

    async def execute(self, name, arguments_json):
        self.executed.append((name, arguments_json))
        outcome = self.results.get(name)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, ToolResult):
            return outcome
        return ToolResult(success=True, data={"tool": name, "arguments": json.loads(arguments_json)})

    async def health_check(self):
        return {"status": "healthy"}

    async def close(self):
        pass


class FakeCompletion:
    """
    Scripted stand-in for CompletionClient.

    Each complete() call pops the next scripted response (or raises it, if
    it is an exception) and records the conversation it was given.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls: list[tuple[list, CatalogSnapshot]] = []

    async def complete(self, conversation, catalog):
        self.calls.append((list(conversation), catalog))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        pass


class StaticCatalog:
    """A catalog that always serves the same snapshot."""

    def __init__(self, tools=FALLBACK_TOOLS):
        self.snapshot = CatalogSnapshot(
            tools=tuple(tools),
            captured_at=datetime.now(timezone.utc),
            source=CatalogSource.LIVE,
        )

    def get_snapshot(self):
        return self.snapshot


class FakeClock:
    def __init__(self):
        self.now = datetime(2025, 1, 31, 10, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


async def no_sleep(_seconds):
    pass


def catalog_config(**overrides) -> CatalogConfig:
    values = {
        "ttl_seconds": 300.0,
        "refresh_interval_seconds": 120.0,
        "max_attempts": 3,
        "retry_delay_seconds": 5.0,
    }
    values.update(overrides)
    return CatalogConfig(**values)


def make_catalog(provider, clock=None, **overrides) -> ToolCatalog:
    return ToolCatalog(
        provider,
        catalog_config(**overrides),
        clock=clock or FakeClock(),
        sleep=no_sleep,
    )


def tool_call(call_id: str, name: str, arguments: str = "{}") -> ToolCall:
    return ToolCall(id=call_id, name=name, arguments_json=arguments)


def reply(text: str = "", *tool_calls: ToolCall, tokens: int | None = None) -> CompletionResponse:
    usage = None
    if tokens is not None:
        usage = TokenUsage(prompt_tokens=tokens, completion_tokens=1, total_tokens=tokens + 1)
    return CompletionResponse(text=text, tool_calls=list(tool_calls), usage=usage)


@pytest.fixture
def provider():
    return FakeProvider(tools=[
        {
            "name": "list_devices",
            "description": "List all network devices",
            "inputSchema": {"type": "object"},
        },
        {
            "name": "create_backup",
            "description": "Create a backup",
            "parameters": {
                "type": "object",
                "properties": {"deviceIds": {"type": "array", "description": "Device IDs"}},
                "required": ["deviceIds"],
            },
        },
    ])


@pytest.fixture
def clock():
    return FakeClock()
