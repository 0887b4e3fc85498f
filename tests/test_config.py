"""
Configuration tests

load_dotenv is patched out so a developer's .env cannot leak into results.
"""

import pytest

from rpchat.utils import config as config_module
from rpchat.utils.config import get_config, load_config, reset_config

ENV_VARS = [
    "AI_API_KEY", "AI_BASE_URL", "AI_MODEL", "AI_TEMPERATURE", "AI_MAX_TOKENS", "AI_TIMEOUT_SECONDS",
    "MCP_SERVER_HOST", "MCP_SERVER_PORT", "MCP_TIMEOUT_SECONDS",
    "TOOL_CACHE_TTL_SECONDS", "TOOL_SYNC_INTERVAL_SECONDS",
    "TOOL_SYNC_MAX_ATTEMPTS", "TOOL_SYNC_RETRY_DELAY_SECONDS",
    "MAX_TOOL_ROUNDS", "MAX_MESSAGE_LENGTH", "PARALLEL_TOOL_CALLS", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "load_dotenv", lambda: None)
    reset_config()
    yield
    reset_config()


def test_defaults(monkeypatch):
    monkeypatch.setenv("AI_API_KEY", "test-key")

    config = load_config()

    assert config.ai.base_url == "https://api.z.ai/api/coding/paas/v4"
    assert config.ai.model == "glm-4.6"
    assert config.ai.temperature == 0.1
    assert config.ai.max_tokens == 1000
    assert config.provider.base_url == "http://localhost:3000"
    assert config.catalog.ttl_seconds == 300.0
    assert config.catalog.refresh_interval_seconds == 120.0
    assert config.catalog.max_attempts == 3
    assert config.catalog.retry_delay_seconds == 5.0
    assert config.agent.max_tool_rounds == 10
    assert config.agent.max_message_length == 500
    assert config.agent.parallel_tool_calls is False
    assert config.log_level == "info"


def test_missing_api_key():
    with pytest.raises(ValueError, match="AI_API_KEY"):
        load_config()


def test_overrides(monkeypatch):
    monkeypatch.setenv("AI_API_KEY", "test-key")
    monkeypatch.setenv("MCP_SERVER_HOST", "mcp.internal")
    monkeypatch.setenv("MCP_SERVER_PORT", "8080")
    monkeypatch.setenv("PARALLEL_TOOL_CALLS", "yes")
    monkeypatch.setenv("MAX_TOOL_ROUNDS", "not-a-number")

    config = load_config()

    assert config.provider.base_url == "http://mcp.internal:8080"
    assert config.agent.parallel_tool_calls is True
    assert config.agent.max_tool_rounds == 10


def test_refresh_interval_must_be_shorter_than_ttl(monkeypatch):
    monkeypatch.setenv("AI_API_KEY", "test-key")
    monkeypatch.setenv("TOOL_CACHE_TTL_SECONDS", "60")
    monkeypatch.setenv("TOOL_SYNC_INTERVAL_SECONDS", "60")

    with pytest.raises(ValueError, match="TOOL_SYNC_INTERVAL_SECONDS"):
        load_config()


def test_get_config_is_cached(monkeypatch):
    monkeypatch.setenv("AI_API_KEY", "test-key")

    assert get_config() is get_config()
