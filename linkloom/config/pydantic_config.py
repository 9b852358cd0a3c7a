"""
Pydantic-based configuration for LinkLoom.

Settings are grouped per stage (scan, categorize) plus AI credentials and
can be loaded from a TOML or JSON file, then overridden from the command
line. Every limit is validated up front so a run never starts with an
invalid concurrency limit or chunk size.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import toml
from pydantic import (
    BaseModel,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

from ..core.liveness_probe import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from ..utils.error_handler import ConfigurationError


class ScanConfig(BaseModel):
    """Liveness scan settings."""

    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        gt=0,
        le=60,
        description="Per-request timeout in seconds",
    )
    concurrency_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum number of probes in flight",
    )
    max_retries: int = Field(
        default=0,
        ge=0,
        le=5,
        description="Extra attempts for transient (error) results",
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0,
        le=60,
        description="Base backoff delay in seconds between retries",
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, min_length=1)
    verify_ssl: bool = True


class CategorizeConfig(BaseModel):
    """Categorization settings."""

    engine: Literal["local", "openai"] = Field(
        default="local",
        description="Categorizer backend",
    )
    chunk_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Bookmarks per categorizer call",
    )
    concurrency_limit: int = Field(
        default=3,
        ge=1,
        le=50,
        description="Maximum number of categorizer calls in flight",
    )
    timeout: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="Timeout in seconds for one categorizer call",
    )
    model: str = Field(default="gpt-4o-mini", min_length=1)
    categories: List[str] = Field(
        default_factory=list,
        description="Preferred category labels shared by every batch",
    )
    requests_per_minute: int = Field(default=60, ge=1, le=1000)
    target_categories: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Approximate number of categories wanted; 5 or fewer selects broad groups",
    )

    @field_validator("categories")
    @classmethod
    def strip_categories(cls, v: List[str]) -> List[str]:
        return [label.strip() for label in v if label and label.strip()]


class AIConfig(BaseModel):
    """AI service credentials."""

    openai_api_key: Optional[SecretStr] = Field(
        default=None,
        description="OpenAI API key",
    )

    @field_validator("openai_api_key", mode="before")
    @classmethod
    def validate_api_key_format(cls, v):
        if v is None or v == "":
            return None

        key_str = v.get_secret_value() if isinstance(v, SecretStr) else str(v)
        if key_str in ("your-openai-api-key-here", "sk-placeholder"):
            raise ValueError(
                "Please replace the placeholder API key with your actual OpenAI API key"
            )
        return SecretStr(key_str)


class LinkLoomConfig(BaseModel):
    """Root configuration."""

    scan: ScanConfig = Field(default_factory=ScanConfig)
    categorize: CategorizeConfig = Field(default_factory=CategorizeConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def validate_engine_requires_key(self):
        if self.categorize.engine == "openai" and not self.ai.openai_api_key:
            raise ValueError("OpenAI engine selected but no API key provided")
        return self


class ConfigurationManager:
    """Loads configuration from a file, the environment and CLI overrides."""

    # CLI argument name -> (section, field)
    CLI_OVERRIDES = {
        "scan_concurrency": ("scan", "concurrency_limit"),
        "timeout": ("scan", "timeout"),
        "retries": ("scan", "max_retries"),
        "chunk_size": ("categorize", "chunk_size"),
        "categorize_concurrency": ("categorize", "concurrency_limit"),
        "engine": ("categorize", "engine"),
        "target_categories": ("categorize", "target_categories"),
    }

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file (TOML or JSON)

        Raises:
            ConfigurationError: If the file cannot be read or is invalid
        """
        self._config: Optional[LinkLoomConfig] = None
        self._load_configuration(Path(config_path) if config_path else None)

    def _load_configuration(self, config_path: Optional[Path]) -> None:
        config_data: Dict[str, Any] = {}
        if config_path:
            config_data = self._load_config_file(config_path)

        self._load_api_keys_from_env(config_data)
        self._config = self._build(config_data)

    @staticmethod
    def _build(config_data: Dict[str, Any]) -> LinkLoomConfig:
        try:
            return LinkLoomConfig(**config_data)
        except ValidationError as e:
            raise ConfigurationError(format_config_error(e)) from e

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        """Load configuration from TOML or JSON file."""
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        suffix = config_path.suffix.lower()
        try:
            if suffix == ".toml":
                return toml.load(config_path)
            if suffix == ".json":
                with open(config_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("top level must be an object")
                return data
        except (OSError, ValueError, toml.TomlDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load configuration from {config_path}: {e}"
            ) from e

        raise ConfigurationError(
            f"Unsupported configuration file format: {config_path.suffix}"
        )

    def _load_api_keys_from_env(self, config_data: Dict[str, Any]) -> None:
        """Fall back to OPENAI_API_KEY when the file carries no key."""
        ai_section = config_data.setdefault("ai", {})
        openai_key = os.getenv("OPENAI_API_KEY")
        if openai_key and not ai_section.get("openai_api_key"):
            ai_section["openai_api_key"] = openai_key

    def update_from_cli_args(self, args: Dict[str, Any]) -> None:
        """
        Apply command-line overrides; arguments that are None are ignored.

        Raises:
            ConfigurationError: If an override makes the configuration invalid
        """
        config_dict = self.config.model_dump()
        for arg_name, (section, field_name) in self.CLI_OVERRIDES.items():
            value = args.get(arg_name)
            if value is not None:
                config_dict[section][field_name] = value

        if args.get("verbose"):
            config_dict["log_level"] = "DEBUG"

        self._config = self._build(config_dict)

    @property
    def config(self) -> LinkLoomConfig:
        if not self._config:
            raise RuntimeError("Configuration not loaded")
        return self._config

    def get_api_key(self, provider: str = "openai") -> Optional[str]:
        """Get API key for provider, returning the actual secret value."""
        if provider == "openai" and self.config.ai.openai_api_key:
            return self.config.ai.openai_api_key.get_secret_value()
        return None

    def create_sample_config(self, output_path: Path, format: str = "toml") -> None:
        """Write a sample configuration file."""
        sample_config = {
            "log_level": "INFO",
            "scan": {
                "timeout": DEFAULT_TIMEOUT,
                "concurrency_limit": 10,
                "max_retries": 0,
                "retry_delay": 1.0,
            },
            "categorize": {
                "engine": "local",
                "chunk_size": 10,
                "concurrency_limit": 3,
                "target_categories": 10,
                "categories": ["Development", "News & Media", "Reference"],
            },
        }

        output_path = Path(output_path)
        if format.lower() == "toml":
            with open(output_path, "w", encoding="utf-8") as f:
                toml.dump(sample_config, f)
        elif format.lower() == "json":
            with open(output_path, "w", encoding="utf-8") as f:
                json.dump(sample_config, f, indent=2)
        else:
            raise ValueError(f"Unsupported format: {format}")


def _format_location(location: tuple) -> str:
    if not location:
        return "configuration"
    return ".".join(str(part) for part in location)


def format_config_error(error: Exception) -> str:
    """
    Format a configuration error into a readable message.

    Args:
        error: Exception raised while building the configuration

    Returns:
        One line per problem, prefixed with the offending setting
    """
    if not isinstance(error, ValidationError):
        return f"Configuration error: {error}"

    lines = ["Configuration validation failed:"]
    for detail in error.errors():
        location = _format_location(detail.get("loc", ()))
        message = detail.get("msg", "Invalid value")
        if "input" in detail and "api_key" not in location:
            lines.append(f"  {location}: {message} (got: {detail['input']!r})")
        else:
            lines.append(f"  {location}: {message}")
    return "\n".join(lines)


__all__ = [
    "AIConfig",
    "CategorizeConfig",
    "ConfigurationManager",
    "LinkLoomConfig",
    "ScanConfig",
    "format_config_error",
]
