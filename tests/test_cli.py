"""Tests for the command line entry point."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from aggregator.common.exceptions import ComponentError
from aggregator.pipeline import main as main_module
from aggregator.pipeline.runner import RunReport


def test_parser_defaults() -> None:
    args = main_module.create_parser().parse_args(["run.json", "--log-level", "debug"])
    assert args.config == Path("run.json")
    assert args.env_file == Path(".env")
    assert args.log_level == "DEBUG"


def test_missing_config_exits_with_config_code(tmp_path: Path) -> None:
    code = main_module.main([str(tmp_path / "missing.json"), "--env-file", str(tmp_path / ".env")])
    assert code == main_module.EXIT_CONFIG


def test_invalid_config_exits_with_config_code(tmp_path: Path) -> None:
    config_path = tmp_path / "run.json"
    config_path.write_text(json.dumps({"name": "run", "posts": 0}), encoding="utf-8")
    code = main_module.main([str(config_path), "--env-file", str(tmp_path / ".env")])
    assert code == main_module.EXIT_CONFIG


class StubRunner:
    report = RunReport(published=2, skipped=1, failed=0)
    error: Exception | None = None

    def __init__(self, context) -> None:
        self.context = context

    def run(self) -> RunReport:
        if StubRunner.error is not None:
            raise StubRunner.error
        return StubRunner.report


@pytest.fixture
def stub_run(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    context = SimpleNamespace(name="nightly", posts=2)
    monkeypatch.setattr(main_module, "load_config", lambda path: context)
    monkeypatch.setattr(main_module, "Runner", StubRunner)
    StubRunner.error = None
    return tmp_path / "run.json"


def test_successful_run_prints_summary(stub_run: Path, capsys: pytest.CaptureFixture) -> None:
    assert main_module.main([str(stub_run), "--env-file", str(stub_run.parent / ".env")]) == 0
    out = capsys.readouterr().out
    assert "Published 2/2" in out
    assert "skipped 1" in out


def test_crashed_run_exits_with_crash_code(stub_run: Path) -> None:
    StubRunner.error = ComponentError("ledger", "database is locked")
    code = main_module.main([str(stub_run), "--env-file", str(stub_run.parent / ".env")])
    assert code == main_module.EXIT_CRASH
