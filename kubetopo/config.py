"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubetopo.models.config import KubeTopoConfig, LogConfig, TopologyConfig


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBETOPO_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_rules_path(value: str) -> str:
    if value and not os.path.isfile(value):
        raise ValueError(f"Rules file not found: {value}")
    return value


def _validate_log_format(value: str) -> str:
    valid = {"json", "console"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log format: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> KubeTopoConfig:
    """Load configuration from KUBETOPO_* environment variables."""
    return KubeTopoConfig(
        topology=TopologyConfig(
            rules_path=_validate_rules_path(_env("RULES_PATH", "")),
            max_depth=_env_int("MAX_DEPTH", 32, min_val=0, max_val=256),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
