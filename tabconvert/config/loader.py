"""
Configuration management and loading.

Handles quota limits, upload rules and per-format option overrides.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from tabconvert.core.converters import UnsupportedFormat, validate_options
from tabconvert.core.parsers import ALLOWED_EXTENSIONS, MAX_UPLOAD_BYTES
from tabconvert.core.quota import STORAGE_KEY, VISITOR_DAILY_LIMIT, WARNING_THRESHOLD


@dataclass(frozen=True)
class QuotaConfig:
    """Daily conversion limits for unauthenticated users."""
    visitor_daily_limit: int = VISITOR_DAILY_LIMIT
    warning_threshold: int = WARNING_THRESHOLD
    storage_key: str = STORAGE_KEY

    def __post_init__(self):
        """Validate quota values."""
        if self.visitor_daily_limit <= 0:
            raise ValueError("visitor_daily_limit must be > 0")
        if self.warning_threshold < 0:
            raise ValueError("warning_threshold must be >= 0")
        if not self.storage_key:
            raise ValueError("storage_key cannot be empty")


@dataclass(frozen=True)
class UploadConfig:
    """Rules applied to uploaded files."""
    max_size_mb: float = MAX_UPLOAD_BYTES / (1024 * 1024)
    allowed_extensions: Tuple[str, ...] = ALLOWED_EXTENSIONS

    def __post_init__(self):
        """Validate upload values."""
        if self.max_size_mb <= 0:
            raise ValueError("max_size_mb must be > 0")
        if not self.allowed_extensions:
            raise ValueError("allowed_extensions cannot be empty")
        for extension in self.allowed_extensions:
            if extension not in ALLOWED_EXTENSIONS:
                raise ValueError(
                    f"Unsupported upload extension {extension!r}; "
                    f"must be one of: {list(ALLOWED_EXTENSIONS)}"
                )

    @property
    def max_size_bytes(self) -> int:
        return int(self.max_size_mb * 1024 * 1024)


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    formats: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def default_config() -> AppConfig:
    """Configuration used when no file is given."""
    return AppConfig()


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Every section is optional, but unknown keys and wrong types are
    rejected so a typo never silently falls back to a default.

    Args:
        path: Path to YAML configuration file; None returns the defaults

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return default_config()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return default_config()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'quota', 'upload', 'formats'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    return AppConfig(
        quota=_parse_quota(raw_config.get('quota') or {}),
        upload=_parse_upload(raw_config.get('upload') or {}),
        formats=_parse_formats(raw_config.get('formats') or {})
    )


def _require_mapping(data: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")
    return data


def _check_keys(data: Mapping[str, Any], allowed: set, path: str) -> None:
    unknown = set(data.keys()) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in {path}: {unknown}")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_quota(data: Any) -> QuotaConfig:
    data = _require_mapping(data, 'quota')
    _check_keys(data, {'visitor_daily_limit', 'warning_threshold', 'storage_key'}, 'quota')

    values = {}
    for key in ('visitor_daily_limit', 'warning_threshold'):
        if key in data:
            if not _is_int(data[key]):
                raise ValueError(f"'{key}' in quota must be an integer")
            values[key] = data[key]
    if 'storage_key' in data:
        if not isinstance(data['storage_key'], str):
            raise ValueError("'storage_key' in quota must be a string")
        values['storage_key'] = data['storage_key']
    return QuotaConfig(**values)


def _parse_upload(data: Any) -> UploadConfig:
    data = _require_mapping(data, 'upload')
    _check_keys(data, {'max_size_mb', 'allowed_extensions'}, 'upload')

    values = {}
    if 'max_size_mb' in data:
        size = data['max_size_mb']
        if isinstance(size, bool) or not isinstance(size, (int, float)):
            raise ValueError("'max_size_mb' in upload must be a number")
        values['max_size_mb'] = float(size)
    if 'allowed_extensions' in data:
        extensions = data['allowed_extensions']
        if not isinstance(extensions, list) or not all(isinstance(e, str) for e in extensions):
            raise ValueError("'allowed_extensions' in upload must be a list of strings")
        values['allowed_extensions'] = tuple(
            e.lower() if e.startswith('.') else f".{e.lower()}" for e in extensions
        )
    return UploadConfig(**values)


def _parse_formats(data: Any) -> Dict[str, Dict[str, Any]]:
    data = _require_mapping(data, 'formats')
    formats = {}
    for format_id, options in data.items():
        path = f"formats.{format_id}"
        options = dict(_require_mapping(options or {}, path))
        try:
            validate_options(str(format_id), options)
        except UnsupportedFormat:
            raise ValueError(f"Unknown or unsupported format in {path}")
        except ValueError as e:
            raise ValueError(f"Invalid options in {path}: {e}")
        formats[str(format_id).lower()] = options
    return formats
