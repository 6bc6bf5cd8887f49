"""Configuration loading for codegraph."""

from settings.config import (
    CONFIG_FILENAME,
    CodegraphConfig,
    ConfigError,
    IndexConfig,
    Neo4jConfig,
    ServiceConfig,
    load_config,
)

__all__ = [
    "CONFIG_FILENAME",
    "CodegraphConfig",
    "ConfigError",
    "IndexConfig",
    "Neo4jConfig",
    "ServiceConfig",
    "load_config",
]
