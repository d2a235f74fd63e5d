"""Configuration loading from an optional YAML file, env vars, and CLI args."""

import os
import logging
from dataclasses import dataclass, fields

import yaml

from src.aggregates import LEGACY_POLICY, TOP_POLICIES
from src.http_correlator import (
    DEFAULT_API_PREFIX, DEFAULT_JSON_LISTING_MARKER, DEFAULT_RATE_SIZE_THRESHOLD,
)
from src.smb_correlator import DEFAULT_NOTIFICATION_COMMANDS

logger = logging.getLogger(__name__)

# env var -> config field
_ENV_OVERRIDES = {
    "TOP_COUNT": "top_count",
    "RATE_SIZE_THRESHOLD": "rate_size_threshold",
    "TOP_POLICY": "top_policy",
    "CMD_LOG_NAME": "cmd_log_name",
    "REQUEST_LOG_NAME": "request_log_name",
}


def _to_int(value) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(f"expected an integer, got {value!r}")
    return int(value)


def _to_str(value) -> str:
    if value is None or isinstance(value, (list, tuple, dict)):
        raise ValueError(f"expected a string, got {value!r}")
    return str(value)


def _to_commands(value) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(_to_str(item) for item in value)
    raise ValueError(f"expected a command name or a list of them, got {value!r}")


_CONVERTERS = {
    "cmd_log_name": _to_str,
    "request_log_name": _to_str,
    "top_count": _to_int,
    "rate_size_threshold": _to_int,
    "api_prefix": _to_str,
    "json_listing_marker": _to_str,
    "notification_commands": _to_commands,
    "top_policy": _to_str,
}


@dataclass(frozen=True)
class Config:
    cmd_log_name: str = "smb-cmd.log"
    request_log_name: str = "smb-request.log"
    top_count: int = 10
    rate_size_threshold: int = DEFAULT_RATE_SIZE_THRESHOLD  # 1 MiB
    api_prefix: str = DEFAULT_API_PREFIX
    json_listing_marker: str = DEFAULT_JSON_LISTING_MARKER
    notification_commands: tuple[str, ...] = DEFAULT_NOTIFICATION_COMMANDS
    top_policy: str = LEGACY_POLICY


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def validate_config(config: Config) -> Config:
    """Raise ValueError for settings the analyzer cannot run with."""
    if config.top_count < 0:
        raise ValueError(f"top_count must be >= 0, got {config.top_count}")
    if config.rate_size_threshold < 0:
        raise ValueError(f"rate_size_threshold must be >= 0, got {config.rate_size_threshold}")
    if config.top_policy not in TOP_POLICIES:
        raise ValueError(
            f"top_policy must be one of {', '.join(TOP_POLICIES)}, got {config.top_policy!r}"
        )
    return config


def load_config(cli_args=None, yaml_data: dict | None = None) -> Config:
    """Build Config from defaults, YAML data, env vars, then CLI args (highest wins)."""
    known = {f.name for f in fields(Config)}
    values: dict = {}

    for key, value in (yaml_data or {}).items():
        if key not in known:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        values[key] = value

    for env_name, key in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is not None:
            values[key] = raw

    for key in ("top_count", "rate_size_threshold", "top_policy"):
        value = getattr(cli_args, key, None)
        if value is not None:
            values[key] = value

    for key, value in values.items():
        try:
            values[key] = _CONVERTERS[key](value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid value for {key}: {e}") from e

    return validate_config(Config(**values))
