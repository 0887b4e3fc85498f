"""
Utilities Module
================

Common utilities shared across the application:
- logger: context-prefixed operator logging
- config: centralized configuration management
"""

from rpchat.utils.logger import Logger, logger, configure_logging
from rpchat.utils.config import get_config, load_config, Config

__all__ = ["Logger", "logger", "configure_logging", "get_config", "load_config", "Config"]
