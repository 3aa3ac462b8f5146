"""Configuration and logging setup."""

from agent_relay.config.logs import configure_logging
from agent_relay.config.settings import Settings, get_settings

__all__ = ["Settings", "configure_logging", "get_settings"]
