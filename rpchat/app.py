"""
Assistant Application
=====================

Composition root: builds every component from the configuration, wires
them together, and exposes the operations a front end (HTTP API, console)
needs:

- process_message(text, session_id) - run one chat request
- catalog_status()                  - tool catalog health for monitoring
- force_catalog_sync()              - operator-triggered catalog refresh
- health_check()                    - MCP server + catalog health

There are no module-level singletons; each AssistantApp owns its clients,
catalog and agent, and start()/stop() bound their lifetime.
"""

import secrets
import time

from rpchat.agent.completion import CompletionClient
from rpchat.agent.core import Agent, ChatResult
from rpchat.agent.resolver import EntityResolver
from rpchat.agent.tools_executor import ToolExecutor
from rpchat.errors import CatalogSyncError, ProviderUnavailableError
from rpchat.tools.catalog import CatalogHealth, CatalogStatus, ToolCatalog
from rpchat.tools.provider import ToolProviderClient
from rpchat.utils.config import Config
from rpchat.utils.logger import Logger

logger = Logger("App")


def new_session_id() -> str:
    """Session IDs look like session_1717171717171_a1b2c3d4e."""
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


class AssistantApp:
    """
    The assembled assistant.

    Example:
        app = AssistantApp.from_config(get_config())
        await app.start()

        result = await app.process_message("list all cisco devices")
        print(result.text)

        await app.stop()
    """

    def __init__(
        self,
        provider: ToolProviderClient,
        catalog: ToolCatalog,
        agent: Agent,
        completion: CompletionClient | None = None
    ):
        self.provider = provider
        self.catalog = catalog
        self.agent = agent
        self.completion = completion

    @classmethod
    def from_config(cls, config: Config) -> "AssistantApp":
        """Build every component from the loaded configuration."""
        provider = ToolProviderClient(config.provider)
        catalog = ToolCatalog(provider, config.catalog)
        completion = CompletionClient(config.ai)
        agent = Agent(
            completion=completion,
            catalog=catalog,
            resolver=EntityResolver(provider),
            executor=ToolExecutor(provider),
            max_tool_rounds=config.agent.max_tool_rounds,
            max_message_length=config.agent.max_message_length,
            parallel_tool_calls=config.agent.parallel_tool_calls,
        )
        return cls(provider=provider, catalog=catalog, agent=agent, completion=completion)

    async def start(self) -> None:
        """
        Initialize the tool catalog.

        Never fails because the MCP server is down; the app starts degraded
        with the fallback tools and recovers on the next refresh.
        """
        logger.info("Starting assistant...")
        await self.catalog.initialize()

        status = self.catalog.status()
        logger.info("Assistant started", {
            "tool_count": status.tool_count,
            "catalog_source": status.source.value,
        })

    async def stop(self) -> None:
        """Shut down the catalog and close network clients."""
        logger.info("Shutting down assistant...")
        await self.catalog.shutdown()
        await self.provider.close()
        if self.completion is not None:
            await self.completion.close()
        logger.info("Shutdown complete")

    async def process_message(self, text: str, session_id: str | None = None) -> ChatResult:
        """
        Run one chat request.

        Raises:
            ModelCallError: If the AI service fails for this request
        """
        return await self.agent.process_message(text, session_id or new_session_id())

    def catalog_status(self) -> CatalogStatus:
        return self.catalog.status()

    async def force_catalog_sync(self) -> CatalogSyncError | None:
        """Refresh the catalog now; returns the error if the fallback is active."""
        return await self.catalog.force_sync()

    async def health_check(self) -> dict:
        """
        Report MCP server and catalog health.

        Returns:
            {"status": "healthy"|"degraded", "provider": {...}, "catalog": {...}}
        """
        status = self.catalog.status()
        healthy = status.health != CatalogHealth.ERROR

        try:
            provider = await self.provider.health_check()
        except ProviderUnavailableError as e:
            provider = {"status": "error", "error": str(e)}
            healthy = False
        else:
            healthy = healthy and provider.get("status") == "healthy"

        return {
            "status": "healthy" if healthy else "degraded",
            "provider": provider,
            "catalog": status.to_dict(),
        }
