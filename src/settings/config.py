from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import tomllib
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

CONFIG_FILENAME = "codegraph.toml"
PASSWORD_ENV_VAR = "CODEGRAPH_NEO4J_PASSWORD"

StrategyName = Literal["native", "scip"]


class ServiceConfig(BaseModel):
    """Identity of the indexed project."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(
        default="",
        description="Service name (empty = project directory name)",
    )
    version: str = Field(
        default=".",
        description="Package version used in symbol strings",
    )
    repository_url: str = Field(default="", description="Repository URL")
    module_path: str | None = Field(
        default=None,
        description="Go module path (default: read from go.mod, else service name)",
    )


class Neo4jConfig(BaseModel):
    """Connection settings for the Neo4j graph store."""

    model_config = ConfigDict(extra="forbid")

    uri: str = Field(default="bolt://localhost:7687", description="Bolt URI")
    username: str = Field(default="neo4j", description="Database user")
    password: SecretStr = Field(
        default=SecretStr(""),
        description=f"Database password (overridden by ${PASSWORD_ENV_VAR})",
    )
    database: str | None = Field(
        default=None,
        description="Database name (None = server default)",
    )
    max_connection_pool_size: int = Field(
        default=10,
        ge=1,
        description="Upper bound on pooled driver connections",
    )
    connection_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for a pooled connection",
    )


class IndexConfig(BaseModel):
    """What to index and how."""

    model_config = ConfigDict(extra="forbid")

    strategy: StrategyName = Field(
        default="native",
        description="Extraction strategy: tree-sitter walk or scip-go index",
    )
    include_tests: bool = Field(
        default=False,
        description="Also index *_test.go files",
    )
    skip_dirs: list[str] = Field(
        default_factory=list,
        description="Directory names pruned in addition to the built-in deny-list",
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Glob patterns for files to exclude",
    )
    respect_gitignore: bool = Field(
        default=True,
        description="Skip files ignored by .gitignore",
    )
    nested_gitignore: bool = Field(
        default=False,
        description=(
            "Enable nested .gitignore composition (default: false for root-only)"
        ),
    )
    scip_binary: str = Field(
        default="scip-go",
        description="External indexer executable name or path",
    )
    scip_index: str | None = Field(
        default=None,
        description="Pre-built index.scip to read instead of running the indexer",
    )
    scip_timeout: float | None = Field(
        default=None,
        description="Seconds before the external indexer is killed (None = no limit)",
    )

    @field_validator("skip_dirs")
    @classmethod
    def validate_skip_dirs(cls, v: list[str]) -> list[str]:
        for name in v:
            if not name or "/" in name or "\\" in name:
                msg = f"skip_dirs entries must be bare directory names, got {name!r}"
                raise ValueError(msg)
        return v


class CodegraphConfig(BaseModel):
    """Configuration for codegraph indexing runs."""

    model_config = ConfigDict(extra="forbid")

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    neo4j: Neo4jConfig = Field(default_factory=Neo4jConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)

    def service_name(self, root: Path) -> str:
        return self.service.name or root.resolve().name


class ConfigError(Exception):
    """Raised when config file exists but cannot be parsed."""


def _apply_env(config: CodegraphConfig) -> CodegraphConfig:
    password = os.environ.get(PASSWORD_ENV_VAR)
    if password:
        neo4j = config.neo4j.model_copy(update={"password": SecretStr(password)})
        config = config.model_copy(update={"neo4j": neo4j})
    return config


def load_config(root: Path) -> CodegraphConfig:
    """Load configuration from codegraph.toml if it exists."""
    config_path = Path(root) / CONFIG_FILENAME

    if not config_path.is_file():
        return _apply_env(CodegraphConfig())

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        config = CodegraphConfig.model_validate(data)
    except ValueError as e:
        msg = f"Invalid config in {config_path}: {e}"
        raise ConfigError(msg) from e

    return _apply_env(config)


__all__ = [
    "CONFIG_FILENAME",
    "PASSWORD_ENV_VAR",
    "CodegraphConfig",
    "ConfigError",
    "IndexConfig",
    "Neo4jConfig",
    "ServiceConfig",
    "StrategyName",
    "load_config",
]
