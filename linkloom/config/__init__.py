"""Configuration for LinkLoom."""

from .pydantic_config import (
    AIConfig,
    CategorizeConfig,
    ConfigurationManager,
    LinkLoomConfig,
    ScanConfig,
    format_config_error,
)

__all__ = [
    "AIConfig",
    "CategorizeConfig",
    "ConfigurationManager",
    "LinkLoomConfig",
    "ScanConfig",
    "format_config_error",
]
