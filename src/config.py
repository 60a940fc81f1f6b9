"""Harness configuration.

Timeouts are loaded from the `timeouts:` section of a YAML file and can be
overridden per variable:

- APPLIER_CONFIG: path to the YAML config file
- APPLIER_CREATE_TIMEOUT: bounds get/create/update calls (seconds)
- APPLIER_DELETE_TIMEOUT: bounds teardown and delete calls (seconds)
- APPLIER_MANIFEST_FETCH_TIMEOUT: bounds remote manifest fetches (seconds)

The manifest bundle (read-only local manifests) is resolved by
get_bundle_dir().
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

import yaml


class ConfigError(Exception):
    """Configuration error."""


# Environment overrides, keyed by TimeoutConfig field
TIMEOUT_ENV_VARS = {
    'create_timeout': 'APPLIER_CREATE_TIMEOUT',
    'delete_timeout': 'APPLIER_DELETE_TIMEOUT',
    'manifest_fetch_timeout': 'APPLIER_MANIFEST_FETCH_TIMEOUT',
}


@dataclass
class TimeoutConfig:
    """Deadlines for backend calls, in seconds.

    Attributes:
        create_timeout: Bounds each get/create/update call
        delete_timeout: Bounds each delete, including deferred teardown
        manifest_fetch_timeout: Bounds a remote manifest fetch
    """
    create_timeout: float = 60.0
    delete_timeout: float = 10.0
    manifest_fetch_timeout: float = 10.0

    def __post_init__(self):
        for f in fields(self):
            value = _parse_seconds(f.name, getattr(self, f.name))
            setattr(self, f.name, value)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'TimeoutConfig':
        """Create TimeoutConfig from dictionary, ignoring unset keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown timeout option(s): {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in data.items() if v is not None})


def _parse_seconds(name: str, value: Union[int, float, str]) -> float:
    """Parse a duration in seconds; accepts numbers and '30s'/'2m' strings."""
    if isinstance(value, bool):
        raise ConfigError(f"{name}: expected a duration, got {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        multiplier = 1.0
        if text.endswith('ms'):
            text, multiplier = text[:-2], 0.001
        elif text.endswith('s'):
            text = text[:-1]
        elif text.endswith('m'):
            text, multiplier = text[:-1], 60.0
        try:
            seconds = float(text) * multiplier
        except ValueError:
            raise ConfigError(f"{name}: invalid duration {value!r}") from None
    else:
        raise ConfigError(f"{name}: expected a duration, got {value!r}")

    if seconds <= 0:
        raise ConfigError(f"{name}: duration must be positive, got {value!r}")
    return seconds


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at top level")
    return data


def load_timeout_config(path: Optional[Path] = None) -> TimeoutConfig:
    """Load timeouts from YAML config, then apply environment overrides.

    Args:
        path: Config file; defaults to $APPLIER_CONFIG when set

    Returns:
        Resolved TimeoutConfig

    Raises:
        ConfigError: If the file is missing or a value is invalid
    """
    if path is None and (env_path := os.environ.get('APPLIER_CONFIG')):
        path = Path(env_path)

    values: dict = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            values.update(_parse_yaml(path).get('timeouts') or {})
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    for field_name, env_var in TIMEOUT_ENV_VARS.items():
        if env_value := os.environ.get(env_var):
            values[field_name] = env_value

    return TimeoutConfig.from_dict(values)


def get_base_dir() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent  # src/ -> project root


def get_bundle_dir() -> Path:
    """Discover the manifest bundle directory.

    Resolution order:
    1. $APPLIER_MANIFESTS environment variable
    2. manifests/ in the project root
    """
    if env_path := os.environ.get('APPLIER_MANIFESTS'):
        path = Path(env_path)
        if path.is_dir():
            return path
        raise ConfigError(f"APPLIER_MANIFESTS={env_path} is not a directory")

    return get_base_dir() / 'manifests'
