"""Configuration helpers."""

from .settings import NodeflowSettings, configure_logging, get_settings

__all__ = ["NodeflowSettings", "configure_logging", "get_settings"]
