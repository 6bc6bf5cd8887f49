from __future__ import annotations

import shutil
from pathlib import Path

import orjson
import pytest

from cli import main

FIXTURE = Path(__file__).parent / "fixtures" / "go_project"


def _copy_fixture(root: Path) -> None:
    shutil.copytree(FIXTURE, root)


def test_cli_index_memory_smoke(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_root = tmp_path / "repo"
    _copy_fixture(repo_root)
    dump = tmp_path / "graph.jsonl"

    exit_code = main(
        ["index", str(repo_root), "--store", "memory", "--json", "--dump", str(dump)]
    )

    assert exit_code == 0
    report = orjson.loads(capsys.readouterr().out)
    assert report["service"] == "repo"
    assert report["strategy"] == "native"
    assert report["indexed"] == ["internal/store/store.go", "main.go", "utils.go"]
    assert report["failed"] == []
    records = [orjson.loads(line) for line in dump.read_bytes().splitlines()]
    assert any(
        r["type"] == "node" and r["labels"] == ["Service"] for r in records
    )


def test_cli_index_text_report(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_root = tmp_path / "repo"
    _copy_fixture(repo_root)

    exit_code = main(["index", str(repo_root), "--store", "memory"])

    assert exit_code == 0
    assert "repo: indexed 3, unchanged 0, removed 0, failed 0" in capsys.readouterr().out


def test_cli_plan_memory(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    repo_root = tmp_path / "repo"
    _copy_fixture(repo_root)

    exit_code = main(["plan", str(repo_root), "--store", "memory", "--json"])

    assert exit_code == 0
    plan = orjson.loads(capsys.readouterr().out)
    assert plan["added"] == ["internal/store/store.go", "main.go", "utils.go"]
    assert plan["deleted"] == []


def test_cli_dump_requires_memory_store(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = main(["index", str(tmp_path), "--dump", str(tmp_path / "g.jsonl")])

    assert exit_code == 2
    assert "--dump requires --store memory" in capsys.readouterr().err


def test_cli_missing_scip_tool_is_fatal(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_root = tmp_path / "repo"
    _copy_fixture(repo_root)
    (repo_root / "codegraph.toml").write_text(
        '[index]\nscip_binary = "codegraph-no-such-indexer"\n', encoding="utf-8"
    )

    exit_code = main(
        ["index", str(repo_root), "--store", "memory", "--strategy", "scip"]
    )

    assert exit_code == 2
    assert "codegraph-no-such-indexer not found" in capsys.readouterr().err


def test_cli_invalid_config_is_fatal(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    (tmp_path / "codegraph.toml").write_text("bogus_key = true\n", encoding="utf-8")

    exit_code = main(["index", str(tmp_path), "--store", "memory"])

    assert exit_code == 2
    assert "Invalid config" in capsys.readouterr().err


def test_cli_missing_root_is_fatal(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = main(["index", str(tmp_path / "missing"), "--store", "memory"])

    assert exit_code == 2
    assert "not a readable directory" in capsys.readouterr().err


def test_cli_symbol(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = main(
        [
            "symbol",
            "scip-go gomod example.com/demo v1 `example.com/demo`/Server#Start().",
            "--json",
        ]
    )

    assert exit_code == 0
    fields = orjson.loads(capsys.readouterr().out)
    assert fields["package_name"] == "example.com/demo"
    assert fields["descriptor"] == "`example.com/demo`/Server#Start()."
    assert fields["kind"] == "Method"


def test_cli_symbol_malformed(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = main(["symbol", "local 3"])

    assert exit_code == 1
    assert "invalid symbol format" in capsys.readouterr().err
