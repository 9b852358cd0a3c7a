"""
Tests for the Pydantic-based configuration system.

Covers:
- ScanConfig and CategorizeConfig bounds
- AIConfig API key handling
- LinkLoomConfig cross-section validation
- ConfigurationManager file loading, environment keys and CLI overrides
- format_config_error output
"""

import json

import pytest
import toml
from pydantic import SecretStr, ValidationError

from linkloom.config.pydantic_config import (
    AIConfig,
    CategorizeConfig,
    ConfigurationManager,
    LinkLoomConfig,
    ScanConfig,
    format_config_error,
)
from linkloom.core.liveness_probe import DEFAULT_TIMEOUT
from linkloom.utils.error_handler import ConfigurationError

API_KEY = "sk-test-config-key-42"


# ============================================================================
# Section models
# ============================================================================


class TestScanConfig:
    """Tests for ScanConfig."""

    def test_default_values(self):
        config = ScanConfig()

        assert config.timeout == DEFAULT_TIMEOUT
        assert config.concurrency_limit == 10
        assert config.max_retries == 0
        assert config.verify_ssl is True

    @pytest.mark.parametrize("limit", [1, 100])
    def test_concurrency_limit_boundaries(self, limit):
        assert ScanConfig(concurrency_limit=limit).concurrency_limit == limit

    @pytest.mark.parametrize("limit", [0, -3, 101])
    def test_concurrency_limit_out_of_range(self, limit):
        with pytest.raises(ValidationError) as exc_info:
            ScanConfig(concurrency_limit=limit)

        assert "concurrency_limit" in str(exc_info.value)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            ScanConfig(timeout=0)

    def test_max_retries_bounds(self):
        assert ScanConfig(max_retries=5).max_retries == 5
        with pytest.raises(ValidationError):
            ScanConfig(max_retries=6)


class TestCategorizeConfig:
    """Tests for CategorizeConfig."""

    def test_default_values(self):
        config = CategorizeConfig()

        assert config.engine == "local"
        assert config.chunk_size == 10
        assert config.concurrency_limit == 3
        assert config.target_categories == 10
        assert config.categories == []

    @pytest.mark.parametrize("chunk_size", [0, -1, 101])
    def test_chunk_size_out_of_range(self, chunk_size):
        with pytest.raises(ValidationError):
            CategorizeConfig(chunk_size=chunk_size)

    def test_unknown_engine_rejected(self):
        with pytest.raises(ValidationError):
            CategorizeConfig(engine="claude")

    @pytest.mark.parametrize("target", [0, 51])
    def test_target_categories_out_of_range(self, target):
        with pytest.raises(ValidationError):
            CategorizeConfig(target_categories=target)

    def test_categories_stripped_and_blank_dropped(self):
        config = CategorizeConfig(categories=[" Tech ", "", "   ", "News"])
        assert config.categories == ["Tech", "News"]


class TestAIConfig:
    """Tests for API key handling."""

    def test_key_stored_as_secret(self):
        config = AIConfig(openai_api_key=API_KEY)

        assert isinstance(config.openai_api_key, SecretStr)
        assert config.openai_api_key.get_secret_value() == API_KEY
        assert API_KEY not in repr(config)

    def test_empty_key_is_none(self):
        assert AIConfig(openai_api_key="").openai_api_key is None

    def test_placeholder_key_rejected(self):
        with pytest.raises(ValidationError, match="placeholder"):
            AIConfig(openai_api_key="your-openai-api-key-here")


class TestLinkLoomConfig:
    """Tests for the root model."""

    def test_defaults(self):
        config = LinkLoomConfig()

        assert config.log_level == "INFO"
        assert config.categorize.engine == "local"

    def test_log_level_case_insensitive(self):
        assert LinkLoomConfig(log_level="debug").log_level == "DEBUG"

    def test_openai_engine_requires_key(self):
        with pytest.raises(ValidationError, match="no API key"):
            LinkLoomConfig(categorize={"engine": "openai"})

    def test_openai_engine_with_key(self):
        config = LinkLoomConfig(
            categorize={"engine": "openai"}, ai={"openai_api_key": API_KEY}
        )
        assert config.categorize.engine == "openai"


# ============================================================================
# ConfigurationManager
# ============================================================================


class TestConfigurationManager:
    """Tests for loading and overriding configuration."""

    def test_defaults_without_file(self):
        manager = ConfigurationManager()

        assert manager.config.scan.concurrency_limit == 10
        assert manager.get_api_key("openai") is None

    def test_load_toml(self, tmp_path):
        """Test values from a TOML file override defaults."""
        path = tmp_path / "linkloom.toml"
        path.write_text(
            toml.dumps(
                {
                    "log_level": "warning",
                    "scan": {"concurrency_limit": 25, "timeout": 5},
                    "categorize": {"chunk_size": 4, "categories": ["Docs"]},
                }
            ),
            encoding="utf-8",
        )

        config = ConfigurationManager(path).config

        assert config.log_level == "WARNING"
        assert config.scan.concurrency_limit == 25
        assert config.scan.timeout == 5
        assert config.categorize.chunk_size == 4
        assert config.categorize.categories == ["Docs"]

    def test_load_json(self, tmp_path):
        path = tmp_path / "linkloom.json"
        path.write_text(json.dumps({"categorize": {"concurrency_limit": 7}}), encoding="utf-8")

        assert ConfigurationManager(path).config.categorize.concurrency_limit == 7

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigurationManager(tmp_path / "missing.toml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "linkloom.yaml"
        path.write_text("scan: {}", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Unsupported"):
            ConfigurationManager(path)

    def test_malformed_toml(self, tmp_path):
        path = tmp_path / "linkloom.toml"
        path.write_text("[scan\nconcurrency_limit = ", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Failed to load"):
            ConfigurationManager(path)

    def test_json_top_level_must_be_object(self, tmp_path):
        path = tmp_path / "linkloom.json"
        path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigurationManager(path)

    def test_invalid_value_in_file(self, tmp_path):
        """Test a zero concurrency limit is rejected at load time."""
        path = tmp_path / "linkloom.toml"
        path.write_text("[scan]\nconcurrency_limit = 0\n", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigurationManager(path)

        assert "scan.concurrency_limit" in str(exc_info.value)

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", API_KEY)

        assert ConfigurationManager().get_api_key("openai") == API_KEY

    def test_file_key_wins_over_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-environment-1")
        path = tmp_path / "linkloom.toml"
        path.write_text(f'[ai]\nopenai_api_key = "{API_KEY}"\n', encoding="utf-8")

        assert ConfigurationManager(path).get_api_key() == API_KEY

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", API_KEY)
        assert ConfigurationManager().get_api_key("anthropic") is None

    def test_cli_overrides(self):
        manager = ConfigurationManager()

        manager.update_from_cli_args(
            {
                "scan_concurrency": 4,
                "timeout": 1.5,
                "retries": 2,
                "chunk_size": 20,
                "categorize_concurrency": 6,
                "engine": None,
                "target_categories": 4,
                "verbose": True,
            }
        )
        config = manager.config

        assert config.scan.concurrency_limit == 4
        assert config.scan.timeout == 1.5
        assert config.scan.max_retries == 2
        assert config.categorize.chunk_size == 20
        assert config.categorize.concurrency_limit == 6
        assert config.categorize.engine == "local"
        assert config.categorize.target_categories == 4
        assert config.log_level == "DEBUG"

    def test_invalid_cli_override(self):
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError, match="chunk_size"):
            manager.update_from_cli_args({"chunk_size": 0})

    def test_cli_openai_engine_keeps_environment_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", API_KEY)
        manager = ConfigurationManager()

        manager.update_from_cli_args({"engine": "openai"})

        assert manager.config.categorize.engine == "openai"
        assert manager.get_api_key() == API_KEY

    def test_cli_openai_engine_without_key(self):
        with pytest.raises(ConfigurationError, match="no API key"):
            ConfigurationManager().update_from_cli_args({"engine": "openai"})

    @pytest.mark.parametrize("fmt,suffix", [("toml", ".toml"), ("json", ".json")])
    def test_sample_config_loads_back(self, tmp_path, fmt, suffix):
        path = tmp_path / f"sample{suffix}"

        ConfigurationManager().create_sample_config(path, format=fmt)
        config = ConfigurationManager(path).config

        assert config.scan.concurrency_limit == 10
        assert config.categorize.categories == ["Development", "News & Media", "Reference"]
        assert config.categorize.target_categories == 10

    def test_sample_config_unknown_format(self, tmp_path):
        with pytest.raises(ValueError):
            ConfigurationManager().create_sample_config(tmp_path / "x.yaml", format="yaml")


# ============================================================================
# Error formatting
# ============================================================================


class TestFormatConfigError:
    """Tests for format_config_error."""

    def test_one_line_per_problem(self):
        with pytest.raises(ValidationError) as exc_info:
            LinkLoomConfig(scan={"concurrency_limit": 0, "timeout": -1})

        message = format_config_error(exc_info.value)
        lines = message.splitlines()

        assert lines[0] == "Configuration validation failed:"
        assert len(lines) == 3
        assert any("scan.concurrency_limit" in line and "got: 0" in line for line in lines)

    def test_api_key_input_hidden(self):
        with pytest.raises(ValidationError) as exc_info:
            AIConfig(openai_api_key="sk-placeholder")

        assert "sk-placeholder" not in format_config_error(exc_info.value)

    def test_non_validation_error(self):
        assert format_config_error(ValueError("boom")) == "Configuration error: boom"
