"""
Tool catalog tests

Normalization, sync-with-retry, fallback activation, staleness-driven
refresh and lifecycle of the cached catalog.
"""

import asyncio
import json

import pytest

from conftest import FakeProvider, catalog_config, make_catalog
from rpchat.errors import CatalogSyncError, ProviderUnavailableError
from rpchat.tools.catalog import (
    EMPTY_SNAPSHOT,
    CatalogHealth,
    CatalogSource,
    ToolCatalog,
    normalize_schema,
    normalize_tool,
    normalize_tools,
)
from rpchat.tools.fallback import FALLBACK_TOOLS


# ==============================================================================
# Normalization
# ==============================================================================

def test_bare_object_schema_gets_properties_and_required():
    tool = normalize_tool({
        "name": "list_devices",
        "description": "List all network devices",
        "inputSchema": {"type": "object"},
    })

    assert tool.parameters == {"type": "object", "properties": {}, "required": []}


def test_missing_required_survives_serialization_as_empty_list():
    tool = normalize_tool({"name": "get_device", "inputSchema": {"type": "object", "properties": {}}})

    wire = json.loads(json.dumps(tool.to_dict()))
    assert wire["parameters"]["required"] == []


def test_missing_schema_becomes_empty_object_schema():
    assert normalize_schema(None) == {"type": "object", "properties": {}, "required": []}
    assert normalize_schema("not a schema") == {"type": "object", "properties": {}, "required": []}


def test_property_repairs():
    schema = normalize_schema({
        "type": "object",
        "properties": {
            "deviceId": {"type": "string", "description": "Device ID"},
            "count": 5,
            "label": {"description": "Free-form label"},
        },
        "required": "deviceId",
    })

    assert schema["properties"]["deviceId"] == {"type": "string", "description": "Device ID"}
    assert schema["properties"]["count"] == {"type": "string", "description": "Property count"}
    assert schema["properties"]["label"] == {"description": "Free-form label", "type": "string"}
    assert schema["required"] == []


def test_normalized_schema_shares_nothing_with_input():
    raw = {
        "type": "object",
        "properties": {"tags": {"type": "array", "items": {"type": "string"}}},
        "required": ["tags"],
    }
    schema = normalize_schema(raw)

    raw["properties"]["tags"]["items"]["type"] = "number"
    raw["required"].append("other")

    assert schema["properties"]["tags"]["items"] == {"type": "string"}
    assert schema["required"] == ["tags"]


def test_parameters_key_is_accepted():
    tool = normalize_tool({
        "name": "create_backup",
        "parameters": {"type": "object", "properties": {"deviceIds": {"type": "array"}}, "required": ["deviceIds"]},
    })

    assert tool.description == ""
    assert tool.parameters["required"] == ["deviceIds"]


def test_tool_without_name_is_rejected():
    with pytest.raises(CatalogSyncError):
        normalize_tool({"description": "nameless"})

    with pytest.raises(CatalogSyncError):
        normalize_tools({"tools": []})


def test_duplicate_names_keep_first_definition():
    tools = normalize_tools([
        {"name": "list_devices", "description": "first"},
        {"name": "list_devices", "description": "second"},
        {"name": "get_device", "description": "third"},
    ])

    assert [tool.name for tool in tools] == ["list_devices", "get_device"]
    assert tools[0].description == "first"


def test_tool_dicts_are_copies_of_the_schema():
    tool = normalize_tool({
        "name": "get_device",
        "inputSchema": {
            "type": "object",
            "properties": {"deviceId": {"type": "string"}},
            "required": ["deviceId"],
        },
    })

    tool.to_dict()["parameters"]["required"].append("includeConnections")
    tool.to_openai_function()["function"]["parameters"]["properties"].clear()

    assert tool.parameters["required"] == ["deviceId"]
    assert tool.parameters["properties"] == {"deviceId": {"type": "string"}}


def test_fallback_tools_are_normalized():
    for tool in FALLBACK_TOOLS:
        assert set(tool.parameters) == {"type", "properties", "required"}
        assert normalize_tool(tool.to_dict()) == tool


# ==============================================================================
# Sync and fallback
# ==============================================================================

@pytest.mark.asyncio
async def test_initialize_publishes_live_tools(provider, clock):
    catalog = make_catalog(provider, clock)
    try:
        await catalog.initialize()
        snapshot = catalog.get_snapshot()

        assert catalog.initialized
        assert snapshot.source == CatalogSource.LIVE
        assert snapshot.names() == ["list_devices", "create_backup"]
        assert snapshot.captured_at == clock.now
        assert snapshot.get("list_devices").parameters == {"type": "object", "properties": {}, "required": []}
    finally:
        await catalog.shutdown()


@pytest.mark.asyncio
async def test_initialize_is_idempotent(provider, clock):
    catalog = make_catalog(provider, clock)
    try:
        await catalog.initialize()
        await catalog.initialize()

        assert provider.list_tools_calls == 1
    finally:
        await catalog.shutdown()


@pytest.mark.asyncio
async def test_all_attempts_failing_activates_fallback(clock):
    provider = FakeProvider()
    provider.list_tools_error = ProviderUnavailableError("MCP server not reachable at http://localhost:3000")
    delays = []

    async def record_sleep(seconds):
        delays.append(seconds)

    catalog = ToolCatalog(provider, catalog_config(), clock=clock, sleep=record_sleep)
    try:
        await catalog.initialize()
        snapshot = catalog.get_snapshot()
        status = catalog.status()

        assert provider.list_tools_calls == 3
        assert delays == [5.0, 5.0]
        assert snapshot.tools == FALLBACK_TOOLS
        assert snapshot.source == CatalogSource.FALLBACK
        assert catalog.initialized
        assert status.health != CatalogHealth.ERROR
        assert status.last_sync_at is not None
        assert status.provider_connected is False
    finally:
        await catalog.shutdown()


@pytest.mark.asyncio
async def test_retry_recovers_before_attempts_run_out(provider, clock):
    attempts = []
    original = provider.list_tools

    async def flaky_list_tools():
        attempts.append(1)
        if len(attempts) < 3:
            raise ProviderUnavailableError("Timeout during get available tools")
        return await original()

    provider.list_tools = flaky_list_tools
    catalog = make_catalog(provider, clock)
    try:
        error = await catalog.force_sync()

        assert error is None
        assert len(attempts) == 3
        assert catalog.get_snapshot().source == CatalogSource.LIVE
    finally:
        await catalog.shutdown()


@pytest.mark.asyncio
async def test_force_sync_reports_error_when_fallback_is_used(provider, clock):
    catalog = make_catalog(provider, clock)
    try:
        await catalog.initialize()
        assert await catalog.force_sync() is None

        provider.list_tools_error = ProviderUnavailableError("down")
        error = await catalog.force_sync()

        assert isinstance(error, CatalogSyncError)
        assert catalog.get_snapshot().source == CatalogSource.FALLBACK
    finally:
        await catalog.shutdown()


@pytest.mark.asyncio
async def test_malformed_tool_list_never_publishes_a_partial_snapshot(provider, clock):
    catalog = make_catalog(provider, clock)
    try:
        await catalog.initialize()

        provider.tools = [
            {"name": "list_devices", "inputSchema": {"type": "object"}},
            {"description": "entry without a name"},
        ]
        error = await catalog.force_sync()
        snapshot = catalog.get_snapshot()

        assert isinstance(error, CatalogSyncError)
        assert snapshot.tools == FALLBACK_TOOLS
    finally:
        await catalog.shutdown()


@pytest.mark.asyncio
async def test_published_snapshots_are_always_fully_normalized(clock):
    provider = FakeProvider(tools=[
        {"name": "run_command", "inputSchema": {"properties": {"command": "text", "deviceId": {}}}},
        {"name": "get_backup"},
    ])
    catalog = make_catalog(provider, clock)
    try:
        await catalog.initialize()

        for tool in catalog.get_snapshot().tools:
            assert set(tool.parameters) == {"type", "properties", "required"}
            assert tool.parameters["type"] == "object"
            for prop in tool.parameters["properties"].values():
                assert prop["type"] == "string"
    finally:
        await catalog.shutdown()


# ==============================================================================
# Staleness
# ==============================================================================

@pytest.mark.asyncio
async def test_stale_reads_trigger_one_background_sync(provider, clock):
    catalog = make_catalog(provider, clock)
    try:
        await catalog.initialize()
        old = catalog.get_snapshot()

        provider.gate = asyncio.Event()
        provider.tools = provider.tools + [{"name": "get_device", "description": "Get a device"}]
        clock.advance(301)

        snapshots = [catalog.get_snapshot() for _ in range(5)]
        await asyncio.sleep(0)
        snapshots.extend(catalog.get_snapshot() for _ in range(5))

        assert all(snapshot is old for snapshot in snapshots)
        assert provider.list_tools_calls == 2
        assert catalog.status().health == CatalogHealth.SYNCING

        provider.gate.set()
        assert await catalog.force_sync() is None

        fresh = catalog.get_snapshot()
        assert provider.list_tools_calls == 2
        assert fresh is not old
        assert fresh.names() == ["list_devices", "create_backup", "get_device"]
        assert fresh.captured_at == clock.now
    finally:
        await catalog.shutdown()


@pytest.mark.asyncio
async def test_fresh_reads_do_not_sync(provider, clock):
    catalog = make_catalog(provider, clock)
    try:
        await catalog.initialize()
        clock.advance(299)

        catalog.get_snapshot()
        await asyncio.sleep(0)

        assert provider.list_tools_calls == 1
        assert not catalog.sync_in_progress
    finally:
        await catalog.shutdown()


# ==============================================================================
# Status and lifecycle
# ==============================================================================

@pytest.mark.asyncio
async def test_status_fields(provider, clock):
    catalog = make_catalog(provider, clock)
    try:
        before = catalog.status()
        assert before.initialized is False
        assert before.last_sync_at is None
        assert before.tool_count == 0
        assert before.next_refresh_in_seconds == 0

        await catalog.initialize()
        clock.advance(100)
        status = catalog.status()

        assert status.initialized is True
        assert status.tool_count == 2
        assert status.health == CatalogHealth.HEALTHY
        assert status.next_refresh_in_seconds == 200
        assert status.provider_connected is True
        assert status.to_dict()["tool_names"] == ["list_devices", "create_backup"]

        clock.advance(201)
        assert catalog.status().health == CatalogHealth.STALE
    finally:
        await catalog.shutdown()


@pytest.mark.asyncio
async def test_shutdown_releases_snapshot(provider, clock):
    catalog = make_catalog(provider, clock)
    await catalog.initialize()
    await catalog.shutdown()

    assert catalog.get_snapshot() is EMPTY_SNAPSHOT
    assert catalog.initialized is False

    await asyncio.sleep(0)
    assert provider.list_tools_calls == 1


@pytest.mark.asyncio
async def test_reinitialize_after_shutdown(provider, clock):
    catalog = make_catalog(provider, clock)
    try:
        await catalog.initialize()
        await catalog.shutdown()
        await catalog.initialize()

        assert catalog.initialized
        assert len(catalog.get_snapshot()) == 2
        assert provider.list_tools_calls == 2
    finally:
        await catalog.shutdown()


@pytest.mark.asyncio
async def test_shutdown_cancels_in_flight_sync(provider, clock):
    catalog = make_catalog(provider, clock)
    await catalog.initialize()

    provider.gate = asyncio.Event()
    clock.advance(301)
    catalog.get_snapshot()
    await asyncio.sleep(0)
    assert catalog.sync_in_progress

    await catalog.shutdown()

    assert not catalog.sync_in_progress
    assert catalog.get_snapshot() is EMPTY_SNAPSHOT


@pytest.mark.asyncio
async def test_force_sync_after_shutdown_does_not_fetch(provider, clock):
    catalog = make_catalog(provider, clock)
    await catalog.initialize()
    await catalog.shutdown()

    error = await catalog.force_sync()

    assert isinstance(error, CatalogSyncError)
    assert provider.list_tools_calls == 1
    assert catalog.get_snapshot() is EMPTY_SNAPSHOT


# ==============================================================================
# Background refresh
# ==============================================================================

@pytest.mark.asyncio
async def test_refresh_job_syncs_on_interval(provider, clock):
    catalog = make_catalog(provider, clock, refresh_interval_seconds=0.05)
    try:
        await catalog.initialize()
        await asyncio.sleep(0.5)

        assert provider.list_tools_calls >= 3
    finally:
        await catalog.shutdown()


@pytest.mark.asyncio
async def test_refresh_tick_skips_while_sync_in_flight(provider, clock):
    catalog = make_catalog(provider, clock, refresh_interval_seconds=0.05)
    try:
        await catalog.initialize()

        provider.gate = asyncio.Event()
        clock.advance(301)
        catalog.get_snapshot()
        await asyncio.sleep(0.3)

        assert provider.list_tools_calls == 2
        await catalog._scheduled_refresh()
        assert provider.list_tools_calls == 2

        provider.gate.set()
        assert await catalog.force_sync() is None
        assert provider.list_tools_calls == 2
    finally:
        await catalog.shutdown()


@pytest.mark.asyncio
async def test_shutdown_stops_refresh_job(provider, clock):
    catalog = make_catalog(provider, clock, refresh_interval_seconds=0.05)
    await catalog.initialize()
    await asyncio.sleep(0.2)
    assert provider.list_tools_calls >= 2

    await catalog.shutdown()
    calls = provider.list_tools_calls
    await asyncio.sleep(0.3)

    assert provider.list_tools_calls == calls
