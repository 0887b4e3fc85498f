"""
Configuration Management
========================

Centralized configuration for the assistant. All environment variables are
validated and typed here, then handed to components through their
constructors by the composition root (rpchat.app).

Sections:
- ai:       OpenAI-compatible completion endpoint (z.ai GLM by default)
- provider: Restorepoint MCP server reachable over HTTP
- catalog:  tool catalog cache timings (TTL, refresh cadence, retries)
- agent:    orchestration limits (tool rounds, message length)

Usage:
    from rpchat.utils.config import get_config

    config = get_config()
    print(config.provider.base_url)
    print(config.catalog.ttl_seconds)
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from rpchat.utils.logger import Logger

logger = Logger("Config")


def _required(name: str) -> str:
    """
    Get a required environment variable.

    Raises:
        ValueError: If the variable is not set
    """
    value = os.getenv(name)
    if not value:
        raise ValueError(
            f"Missing required environment variable: {name}\n"
            f"Please ensure {name} is set in your .env file."
        )
    return value


def _optional(name: str, default: str) -> str:
    return os.getenv(name) or default


def _optional_int(name: str, default: int) -> int:
    """
    Get an optional integer environment variable.

    Invalid values are reported and replaced by the default.
    """
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"{name} is not a valid integer, using default", {"default": default})
        return default


def _optional_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"{name} is not a valid number, using default", {"default": default})
        return default


def _optional_bool(name: str, default: bool) -> bool:
    """True only for 'true', '1' or 'yes' (case-insensitive)."""
    value = os.getenv(name)
    if not value:
        return default
    return value.strip().lower() in ("true", "1", "yes")


# ==============================================================================
# Configuration Dataclasses
# ==============================================================================

@dataclass(frozen=True)
class AIConfig:
    """Completion API configuration."""
    api_key: str
    base_url: str           # Any OpenAI-compatible endpoint
    model: str
    temperature: float
    max_tokens: int
    timeout_seconds: float  # Per model call


@dataclass(frozen=True)
class ProviderConfig:
    """Restorepoint MCP server (HTTP) configuration."""
    host: str
    port: int
    timeout_seconds: float  # Per provider request

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


@dataclass(frozen=True)
class CatalogConfig:
    """Tool catalog cache configuration."""
    ttl_seconds: float               # Snapshot age after which it is stale
    refresh_interval_seconds: float  # Background refresh period (< ttl)
    max_attempts: int                # Fetch attempts per sync
    retry_delay_seconds: float       # Fixed delay between attempts


@dataclass(frozen=True)
class AgentConfig:
    """Orchestration limits."""
    max_tool_rounds: int
    max_message_length: int
    parallel_tool_calls: bool


@dataclass(frozen=True)
class Config:
    """
    Root configuration object.

    Access via:
        config = get_config()
        config.ai.model
        config.catalog.refresh_interval_seconds
    """
    ai: AIConfig
    provider: ProviderConfig
    catalog: CatalogConfig
    agent: AgentConfig
    log_level: str


def load_config() -> Config:
    """
    Load and validate all configuration from the environment.

    Loads .env first, so values there act as defaults for the process
    environment.

    Raises:
        ValueError: If required configuration is missing or the catalog
            refresh interval is not shorter than its TTL
    """
    load_dotenv()

    catalog = CatalogConfig(
        ttl_seconds=_optional_float("TOOL_CACHE_TTL_SECONDS", 300.0),
        refresh_interval_seconds=_optional_float("TOOL_SYNC_INTERVAL_SECONDS", 120.0),
        max_attempts=max(1, _optional_int("TOOL_SYNC_MAX_ATTEMPTS", 3)),
        retry_delay_seconds=_optional_float("TOOL_SYNC_RETRY_DELAY_SECONDS", 5.0),
    )
    if catalog.refresh_interval_seconds >= catalog.ttl_seconds:
        raise ValueError(
            "TOOL_SYNC_INTERVAL_SECONDS must be shorter than TOOL_CACHE_TTL_SECONDS "
            f"(got {catalog.refresh_interval_seconds} >= {catalog.ttl_seconds})"
        )

    return Config(
        ai=AIConfig(
            api_key=_required("AI_API_KEY"),
            base_url=_optional("AI_BASE_URL", "https://api.z.ai/api/coding/paas/v4"),
            model=_optional("AI_MODEL", "glm-4.6"),
            temperature=_optional_float("AI_TEMPERATURE", 0.1),
            max_tokens=_optional_int("AI_MAX_TOKENS", 1000),
            timeout_seconds=_optional_float("AI_TIMEOUT_SECONDS", 60.0),
        ),
        provider=ProviderConfig(
            host=_optional("MCP_SERVER_HOST", "localhost"),
            port=_optional_int("MCP_SERVER_PORT", 3000),
            timeout_seconds=_optional_float("MCP_TIMEOUT_SECONDS", 30.0),
        ),
        catalog=catalog,
        agent=AgentConfig(
            max_tool_rounds=max(1, _optional_int("MAX_TOOL_ROUNDS", 10)),
            max_message_length=_optional_int("MAX_MESSAGE_LENGTH", 500),
            parallel_tool_calls=_optional_bool("PARALLEL_TOOL_CALLS", False),
        ),
        log_level=_optional("LOG_LEVEL", "info"),
    )


# Loaded once by the entry point; components receive their sections explicitly
_config_instance: Config | None = None


def get_config() -> Config:
    """Get the configuration, loading it on first access."""
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Forget the cached configuration (used by tests)."""
    global _config_instance
    _config_instance = None
