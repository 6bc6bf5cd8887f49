from __future__ import annotations

from pathlib import Path

import pytest

from settings.config import PASSWORD_ENV_VAR, ConfigError, load_config


def _write_config(repo_root: Path, toml_content: str) -> None:
    (repo_root / "codegraph.toml").write_text(toml_content, encoding="utf-8")


def test_unknown_section_rejected(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        """
[semantic]
enabled = true
""".strip(),
    )

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_unknown_top_level_key_rejected(tmp_path: Path) -> None:
    _write_config(tmp_path, "bogus_key = true")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_unknown_nested_key_rejected(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        """
[neo4j]
uri = "bolt://db:7687"
bogus = true
""".strip(),
    )

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_invalid_toml_rejected(tmp_path: Path) -> None:
    _write_config(tmp_path, "[index\nstrategy = ")

    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(tmp_path)


def test_unknown_strategy_rejected(tmp_path: Path) -> None:
    _write_config(tmp_path, '[index]\nstrategy = "ctags"')

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_skip_dirs_must_be_bare_names(tmp_path: Path) -> None:
    _write_config(tmp_path, '[index]\nskip_dirs = ["third_party/gen"]')

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_valid_config_accepted(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        """
[service]
name = "billing"
version = "v1.4.0"
module_path = "example.com/billing"

[neo4j]
uri = "neo4j://graph.internal:7687"
database = "code"

[index]
strategy = "scip"
include_tests = true
skip_dirs = ["third_party"]
exclude = ["**/*_gen.go"]
scip_index = "build/index.scip"
""".strip(),
    )

    config = load_config(tmp_path)

    assert config.service_name(tmp_path) == "billing"
    assert config.service.version == "v1.4.0"
    assert config.service.module_path == "example.com/billing"
    assert config.neo4j.uri == "neo4j://graph.internal:7687"
    assert config.neo4j.database == "code"
    assert config.index.strategy == "scip"
    assert config.index.include_tests is True
    assert config.index.skip_dirs == ["third_party"]
    assert config.index.exclude == ["**/*_gen.go"]
    assert config.index.scip_index == "build/index.scip"


def test_empty_config_accepted(tmp_path: Path) -> None:
    _write_config(tmp_path, "")

    config = load_config(tmp_path)

    assert config.service_name(tmp_path) == tmp_path.resolve().name
    assert config.service.version == "."
    assert config.index.strategy == "native"
    assert config.index.respect_gitignore is True
    assert config.neo4j.uri == "bolt://localhost:7687"


def test_missing_config_uses_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv(PASSWORD_ENV_VAR, raising=False)

    config = load_config(tmp_path)

    assert config.index.skip_dirs == []
    assert config.neo4j.password.get_secret_value() == ""


def test_password_from_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_config(tmp_path, '[neo4j]\npassword = "from-file"')
    monkeypatch.setenv(PASSWORD_ENV_VAR, "from-env")

    config = load_config(tmp_path)

    assert config.neo4j.password.get_secret_value() == "from-env"
    assert "from-env" not in repr(config)
