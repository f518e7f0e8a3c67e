"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class TopologyConfig:
    """Topology engine configuration."""

    rules_path: str = ""  # empty: use the bundled default rules
    max_depth: int = 32  # 0 disables the recursion guard


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"  # json | console


@dataclass
class KubeTopoConfig:
    """Top-level kubetopo configuration."""

    topology: TopologyConfig = field(default_factory=TopologyConfig)
    log: LogConfig = field(default_factory=LogConfig)
