"""
Unit tests for configuration loading and validation.

Tests strict validation and error handling for application configs.
"""

import logging
import os
import tempfile
from pathlib import Path

import pytest
import yaml
from rich.logging import RichHandler

from tabconvert.config.loader import (
    AppConfig,
    QuotaConfig,
    UploadConfig,
    default_config,
    load_config,
)
from tabconvert.config.log_setup import configure_logging

EXAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "tabconvert.example.yaml"


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a valid configuration loads correctly."""
        config_data = {
            "quota": {
                "visitor_daily_limit": 10,
                "warning_threshold": 3,
                "storage_key": "tracking"
            },
            "upload": {
                "max_size_mb": 5,
                "allowed_extensions": ["csv", ".JSON"]
            },
            "formats": {
                "sql": {"table_name": "people"},
                "JSON": {"pretty": False}
            }
        }

        config_path = self._write_config(config_data)
        config = load_config(config_path)

        assert config.quota == QuotaConfig(10, 3, "tracking")
        assert config.upload.max_size_mb == 5.0
        assert config.upload.max_size_bytes == 5 * 1024 * 1024
        assert config.upload.allowed_extensions == (".csv", ".json")
        assert config.formats["sql"] == {"table_name": "people"}
        assert config.formats["json"] == {"pretty": False}
        assert "xml" not in config.formats

    def test_example_config_loads(self):
        """Test that the shipped example configuration is valid."""
        config = load_config(str(EXAMPLE_CONFIG))

        assert config.quota.visitor_daily_limit == 5
        assert config.formats["sql"] == {"table_name": "imported_data"}

    def test_no_path_returns_defaults(self):
        config = load_config(None)

        assert config == default_config()
        assert config.quota.visitor_daily_limit == 5
        assert config.quota.warning_threshold == 2
        assert config.quota.storage_key == "csv_conversion_tracking"
        assert config.upload.max_size_bytes == 100 * 1024 * 1024

    def test_empty_file_returns_defaults(self):
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        Path(config_path).write_text("", encoding="utf-8")

        assert load_config(config_path) == AppConfig()

    def test_partial_sections_keep_defaults(self):
        config_path = self._write_config({"quota": {"visitor_daily_limit": 3}})
        config = load_config(config_path)

        assert config.quota.visitor_daily_limit == 3
        assert config.quota.warning_threshold == 2
        assert config.upload == UploadConfig()

    def test_missing_file_raises_error(self):
        """Test that missing config file raises error."""
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config("nonexistent.yaml")

    def test_invalid_yaml_raises_error(self):
        """Test that invalid YAML raises error."""
        config_path = os.path.join(self.temp_dir, "invalid.yaml")
        with open(config_path, 'w') as f:
            f.write("invalid: yaml: content: [")

        with pytest.raises(yaml.YAMLError):
            load_config(config_path)

    def test_non_mapping_raises_error(self):
        config_path = self._write_config(["quota"])
        with pytest.raises(ValueError, match="must be a mapping"):
            load_config(config_path)

    def test_unknown_top_level_keys_raise_error(self):
        """Test that unknown top-level keys raise error."""
        config_path = self._write_config({"quota": {}, "budget": {"daily": 1}})
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_config(config_path)

    def test_unknown_quota_keys_raise_error(self):
        config_path = self._write_config({"quota": {"monthly_limit": 100}})
        with pytest.raises(ValueError, match="Unknown keys in quota"):
            load_config(config_path)

    def test_unknown_upload_keys_raise_error(self):
        config_path = self._write_config({"upload": {"max_rows": 100}})
        with pytest.raises(ValueError, match="Unknown keys in upload"):
            load_config(config_path)

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit_raises_error(self, limit):
        config_path = self._write_config({"quota": {"visitor_daily_limit": limit}})
        with pytest.raises(ValueError, match="visitor_daily_limit must be > 0"):
            load_config(config_path)

    @pytest.mark.parametrize("limit", ["5", 5.5, True])
    def test_non_integer_limit_raises_error(self, limit):
        config_path = self._write_config({"quota": {"visitor_daily_limit": limit}})
        with pytest.raises(ValueError, match="must be an integer"):
            load_config(config_path)

    def test_negative_threshold_raises_error(self):
        config_path = self._write_config({"quota": {"warning_threshold": -1}})
        with pytest.raises(ValueError, match="warning_threshold must be >= 0"):
            load_config(config_path)

    def test_invalid_upload_size_raises_error(self):
        config_path = self._write_config({"upload": {"max_size_mb": 0}})
        with pytest.raises(ValueError, match="max_size_mb must be > 0"):
            load_config(config_path)

        config_path = self._write_config({"upload": {"max_size_mb": "big"}})
        with pytest.raises(ValueError, match="must be a number"):
            load_config(config_path)

    def test_unsupported_extension_raises_error(self):
        config_path = self._write_config({"upload": {"allowed_extensions": [".xlsx"]}})
        with pytest.raises(ValueError, match="Unsupported upload extension"):
            load_config(config_path)

    def test_section_must_be_mapping(self):
        config_path = self._write_config({"formats": ["csv"]})
        with pytest.raises(ValueError, match="'formats' must be a dictionary"):
            load_config(config_path)

    def test_unknown_format_raises_error(self):
        config_path = self._write_config({"formats": {"pdf": {}}})
        with pytest.raises(ValueError, match="unsupported format in formats.pdf"):
            load_config(config_path)

    def test_excel_options_rejected(self):
        config_path = self._write_config({"formats": {"excel": {"sheet": "A"}}})
        with pytest.raises(ValueError, match="formats.excel"):
            load_config(config_path)

    def test_unknown_format_option_raises_error(self):
        config_path = self._write_config({"formats": {"sql": {"engine": "postgres"}}})
        with pytest.raises(ValueError, match="Invalid options in formats.sql"):
            load_config(config_path)

    def test_wrong_option_type_raises_error(self):
        config_path = self._write_config({"formats": {"json": {"pretty": "yes"}}})
        with pytest.raises(ValueError, match="must be of type bool"):
            load_config(config_path)

    def test_config_is_immutable(self):
        config = default_config()
        with pytest.raises(AttributeError):
            config.quota.visitor_daily_limit = 100


class TestLogSetup:
    """Test logging configuration."""

    def teardown_method(self):
        logger = logging.getLogger("tabconvert")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)

    def test_levels(self):
        assert configure_logging(verbose=True).level == logging.INFO
        assert configure_logging(verbose=False).level == logging.WARNING

    def test_does_not_stack_handlers(self):
        configure_logging()
        logger = configure_logging()

        rich_handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
        assert len(rich_handlers) == 1
