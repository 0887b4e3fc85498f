"""
Tool Catalog
============

The single source of truth for "which tools exist right now".

The MCP server evolves independently of this process: tools get added,
renamed or re-described, and the server itself may be down. The catalog
keeps a normalized, immutable snapshot of the server's tools and refreshes
it in the background, so the AI always gets a usable tool list without a
request ever waiting on the server.

Lifecycle:
    initialize()  -> one sync (with retries), then start the refresh job
         │
         ▼
    get_snapshot() -> current snapshot, instantly
         │             (a stale snapshot triggers a detached refresh)
         ▼
    refresh job    -> every refresh_interval, sync again
         │
         ▼
    shutdown()    -> stop the job, drop the snapshot

Sync with retry:
    Up to max_attempts fetch-and-normalize attempts with a fixed delay in
    between. If every attempt fails the built-in fallback tools are
    published instead. A fallback publish still counts as a sync, so the
    staleness check does not hammer a server that is down.

Only one sync runs at a time. A refresh requested while one is in flight
is dropped (or joined, for force_sync). Snapshots are replaced by a single
attribute assignment on the event loop, so readers always see a complete
old or new snapshot.

Scheduling is handled by APScheduler's AsyncIOScheduler, which runs the
refresh coroutine on the same event loop as the requests.
"""

import asyncio
import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from rpchat.errors import CatalogSyncError
from rpchat.tools import ToolDefinition
from rpchat.tools.fallback import FALLBACK_TOOLS
from rpchat.tools.provider import ToolProviderClient
from rpchat.utils.config import CatalogConfig
from rpchat.utils.logger import Logger

logger = Logger("Catalog")


class CatalogSource(str, Enum):
    """Where the current snapshot came from."""
    EMPTY = "empty"
    LIVE = "live"
    FALLBACK = "fallback"


class CatalogHealth(str, Enum):
    HEALTHY = "healthy"
    STALE = "stale"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    An immutable point-in-time copy of the catalog.

    Attributes:
        tools: Normalized tool definitions, in provider order
        captured_at: When the snapshot was published (None if never synced)
        source: Live provider, fallback tools, or empty
    """
    tools: tuple[ToolDefinition, ...] = ()
    captured_at: datetime | None = None
    source: CatalogSource = CatalogSource.EMPTY

    def __len__(self) -> int:
        return len(self.tools)

    def names(self) -> list[str]:
        return [tool.name for tool in self.tools]

    def get(self, name: str) -> ToolDefinition | None:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    def to_openai_tools(self) -> list[dict]:
        """
        Tool list for the completion API.

        Returns deep copies so callers cannot alter the published schemas.
        """
        return [tool.to_openai_function() for tool in self.tools]


EMPTY_SNAPSHOT = CatalogSnapshot()


@dataclass(frozen=True)
class CatalogStatus:
    """Monitoring view of the catalog, derived on every call."""
    initialized: bool
    last_sync_at: datetime | None
    tool_count: int
    health: CatalogHealth
    next_refresh_in_seconds: int
    provider_connected: bool
    source: CatalogSource
    tool_names: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "initialized": self.initialized,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "tool_count": self.tool_count,
            "health": self.health.value,
            "next_refresh_in_seconds": self.next_refresh_in_seconds,
            "provider_connected": self.provider_connected,
            "source": self.source.value,
            "tool_names": list(self.tool_names),
        }


# ==============================================================================
# Schema Normalization
# ==============================================================================

def normalize_schema(input_schema: Any) -> dict:
    """
    Normalize a provider input schema to {type, properties, required}.

    - missing or non-dict schema -> empty object schema
    - missing/invalid properties -> {}
    - missing/invalid required   -> []
    - non-dict property          -> {"type": "string", "description": "Property <name>"}
    - property without a type    -> same property with type "string"

    The result shares no objects with the input.

    Example:
        normalize_schema({"type": "object"})
        # {"type": "object", "properties": {}, "required": []}
    """
    if not isinstance(input_schema, dict):
        return {"type": "object", "properties": {}, "required": []}

    raw_properties = input_schema.get("properties")
    properties: dict[str, Any] = {}
    if isinstance(raw_properties, dict):
        for key, prop in raw_properties.items():
            name = str(key)
            if not isinstance(prop, dict):
                properties[name] = {"type": "string", "description": f"Property {name}"}
            elif not prop.get("type"):
                properties[name] = {**copy.deepcopy(prop), "type": "string"}
            else:
                properties[name] = copy.deepcopy(prop)

    raw_required = input_schema.get("required")
    required: list[str] = []
    if isinstance(raw_required, list):
        required = [str(item) for item in raw_required if isinstance(item, str)]

    return {
        "type": "object",
        "properties": properties,
        "required": required,
    }


def normalize_tool(raw_tool: Any) -> ToolDefinition:
    """
    Turn one provider tool entry into a ToolDefinition.

    The schema may come as "inputSchema" (MCP) or "parameters" (HTTP API).

    Raises:
        CatalogSyncError: If the entry is not an object or has no name
    """
    if not isinstance(raw_tool, dict):
        raise CatalogSyncError(f"Malformed tool entry: expected object, got {type(raw_tool).__name__}")

    name = raw_tool.get("name")
    if not isinstance(name, str) or not name.strip():
        raise CatalogSyncError("Malformed tool entry: missing name")

    schema = raw_tool.get("inputSchema")
    if schema is None:
        schema = raw_tool.get("parameters")

    description = raw_tool.get("description")
    return ToolDefinition(
        name=name.strip(),
        description=description if isinstance(description, str) else "",
        parameters=normalize_schema(schema),
    )


def normalize_tools(raw_tools: Any) -> tuple[ToolDefinition, ...]:
    """
    Normalize a full provider tool list.

    Duplicate names keep the first entry.

    Raises:
        CatalogSyncError: If the list or any entry is malformed
    """
    if not isinstance(raw_tools, (list, tuple)):
        raise CatalogSyncError(f"Malformed tool list: expected array, got {type(raw_tools).__name__}")

    tools: list[ToolDefinition] = []
    seen: set[str] = set()
    for raw_tool in raw_tools:
        tool = normalize_tool(raw_tool)
        if tool.name in seen:
            logger.warning(f"Duplicate tool definition ignored: {tool.name}")
            continue
        seen.add(tool.name)
        tools.append(tool)

    return tuple(tools)


# ==============================================================================
# Catalog Cache
# ==============================================================================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ToolCatalog:
    """
    Cached, self-refreshing view of the MCP server's tools.

    Example:
        catalog = ToolCatalog(provider, config.catalog)
        await catalog.initialize()

        snapshot = catalog.get_snapshot()   # never waits on the network
        tools = snapshot.to_openai_tools()

        print(catalog.status().health)
        await catalog.shutdown()
    """

    JOB_ID = "tool_catalog_refresh"

    def __init__(
        self,
        provider: ToolProviderClient,
        config: CatalogConfig,
        fallback_tools: Iterable[ToolDefinition] = FALLBACK_TOOLS,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Initialize the catalog (no I/O happens until initialize()).

        Args:
            provider: Client used to fetch tool definitions
            config: TTL, refresh interval and retry settings
            fallback_tools: Tools to publish when every attempt fails
            clock: Returns the current time (tests inject a fake one)
            sleep: Awaitable delay between attempts (tests inject a no-op)
        """
        self.provider = provider
        self.config = config
        self._fallback_tools = tuple(fallback_tools)
        self._clock = clock
        self._sleep = sleep

        self._snapshot: CatalogSnapshot = EMPTY_SNAPSHOT
        self._initialized = False
        self._closed = False
        self._init_lock = asyncio.Lock()
        self._sync_task: asyncio.Task | None = None
        self._scheduler: AsyncIOScheduler | None = None

    # --------------------------------------------------------------------------
    # Public API
    # --------------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_task is not None and not self._sync_task.done()

    async def initialize(self) -> None:
        """
        Run the first sync and start background refresh.

        Safe to call more than once; later calls return immediately. Never
        raises on provider failure: the fallback tools are published instead.
        """
        async with self._init_lock:
            if self._initialized:
                logger.debug("Catalog already initialized")
                return

            self._closed = False
            logger.info("Initializing tool catalog", {
                "ttl_seconds": self.config.ttl_seconds,
                "refresh_interval_seconds": self.config.refresh_interval_seconds,
            })

            error = await asyncio.shield(self._ensure_sync())
            self._initialized = True
            self._start_refresh_job()

            snapshot = self._snapshot
            if error is None:
                logger.info("Tool catalog initialized", {"tool_count": len(snapshot)})
            else:
                logger.warning("Tool catalog continuing with fallback tools", {"tool_count": len(snapshot)})

    def get_snapshot(self) -> CatalogSnapshot:
        """
        Return the current snapshot without waiting on I/O.

        A stale snapshot schedules a detached refresh whose result only
        later reads will see.
        """
        snapshot = self._snapshot
        if not self._closed and self._is_stale(snapshot) and not self.sync_in_progress:
            self._trigger_refresh()
        return snapshot

    async def force_sync(self) -> CatalogSyncError | None:
        """
        Sync now, regardless of staleness.

        Joins the in-flight sync if there is one.

        Returns:
            None if the live provider answered, otherwise the last error
            (the fallback tools are then active)
        """
        if self._closed:
            logger.warning("Force sync requested after shutdown, ignoring")
            return CatalogSyncError("Tool catalog is shut down")

        logger.info("Force sync requested")
        return await asyncio.shield(self._ensure_sync())

    def status(self) -> CatalogStatus:
        """Compute the monitoring status. Pure, no I/O."""
        snapshot = self._snapshot
        age = self._age_seconds(snapshot)

        if self.sync_in_progress:
            health = CatalogHealth.SYNCING
        elif self._is_stale(snapshot):
            health = CatalogHealth.STALE
        elif len(snapshot) == 0:
            health = CatalogHealth.ERROR
        else:
            health = CatalogHealth.HEALTHY

        next_refresh = max(0.0, self.config.ttl_seconds - age) if age is not None else 0.0

        return CatalogStatus(
            initialized=self._initialized,
            last_sync_at=snapshot.captured_at,
            tool_count=len(snapshot),
            health=health,
            next_refresh_in_seconds=round(next_refresh),
            provider_connected=snapshot.source == CatalogSource.LIVE,
            source=snapshot.source,
            tool_names=snapshot.names(),
        )

    async def shutdown(self) -> None:
        """
        Stop background refresh and release the snapshot.

        Later reads return the empty snapshot until initialize() is called
        again.
        """
        logger.info("Shutting down tool catalog")
        self._closed = True

        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None

        task = self._sync_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._sync_task = None

        self._snapshot = EMPTY_SNAPSHOT
        self._initialized = False
        logger.info("Tool catalog shut down")

    # --------------------------------------------------------------------------
    # Staleness
    # --------------------------------------------------------------------------

    def _age_seconds(self, snapshot: CatalogSnapshot) -> float | None:
        if snapshot.captured_at is None:
            return None
        return (self._clock() - snapshot.captured_at).total_seconds()

    def _is_stale(self, snapshot: CatalogSnapshot) -> bool:
        age = self._age_seconds(snapshot)
        return age is None or age > self.config.ttl_seconds

    # --------------------------------------------------------------------------
    # Sync
    # --------------------------------------------------------------------------

    def _ensure_sync(self) -> "asyncio.Task[CatalogSyncError | None]":
        """Return the in-flight sync task, starting one if none is running."""
        if self._sync_task is None or self._sync_task.done():
            self._sync_task = asyncio.create_task(self._sync_with_retry())
        return self._sync_task

    def _trigger_refresh(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Stale catalog read outside an event loop, refresh skipped")
            return

        logger.debug("Catalog is stale, refreshing in background")
        self._ensure_sync()

    async def _scheduled_refresh(self) -> None:
        """Interval job body. Skips the tick if a sync is already running."""
        if self._closed:
            return
        if self.sync_in_progress:
            logger.debug("Tool sync already in progress, skipping scheduled refresh")
            return
        await asyncio.shield(self._ensure_sync())

    def _start_refresh_job(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._scheduled_refresh,
            trigger=IntervalTrigger(seconds=self.config.refresh_interval_seconds),
            id=self.JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Started periodic tool sync", {"interval_seconds": self.config.refresh_interval_seconds})

    async def _fetch_and_normalize(self) -> tuple[ToolDefinition, ...]:
        try:
            raw_tools = await self.provider.list_tools()
            return normalize_tools(raw_tools)
        except CatalogSyncError:
            raise
        except Exception as e:
            raise CatalogSyncError(f"Tool sync failed: {e}") from e

    async def _sync_with_retry(self) -> CatalogSyncError | None:
        """
        Fetch, normalize and publish, retrying with a fixed delay.

        Returns:
            None on a live sync, or the last error after publishing the
            fallback tools
        """
        attempts = self.config.max_attempts
        last_error: CatalogSyncError | None = None

        for attempt in range(1, attempts + 1):
            try:
                tools = await self._fetch_and_normalize()
            except CatalogSyncError as e:
                last_error = e
                logger.warning("Tool sync attempt failed", {
                    "attempt": attempt,
                    "max_attempts": attempts,
                    "error": str(e),
                })
                if attempt < attempts:
                    await self._sleep(self.config.retry_delay_seconds)
                continue

            self._publish(CatalogSnapshot(tools=tools, captured_at=self._clock(), source=CatalogSource.LIVE))
            logger.info("Tool sync completed", {"tool_count": len(tools)})
            logger.debug("Synced tools", {"tools": ",".join(tool.name for tool in tools)})
            return None

        logger.error("All tool sync attempts failed, using fallback tools", last_error, {"attempts": attempts})
        self._publish(CatalogSnapshot(
            tools=self._fallback_tools,
            captured_at=self._clock(),
            source=CatalogSource.FALLBACK,
        ))
        return last_error

    def _publish(self, snapshot: CatalogSnapshot) -> None:
        if self._closed:
            logger.debug("Catalog shut down, discarding synced snapshot")
            return
        self._snapshot = snapshot
