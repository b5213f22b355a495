"""Tests for JSON run configuration loading and validation."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from aggregator.common.env import load_env
from aggregator.common.exceptions import ConfigError
from aggregator.integrations.instagram import InstagramGraphPublisher, InstagrapiPublisher
from aggregator.integrations.noop import NoOpPublisher
from aggregator.integrations.twitch import TwitchSource
from aggregator.integrations.ytdlp import YtDlpDownloader
from aggregator.loader import build_context, load_config
from aggregator.steps import FpsStep, VerticalBlurStep
from aggregator.storage import R2Stager, SqliteLedger


def _document(tmp_path: Path) -> dict:
    return {
        "name": "nightly",
        "posts": 3,
        "work_dir": str(tmp_path / "work"),
        "sources": [
            {
                "name": "valorant",
                "type": "twitch",
                "client_id": "cid",
                "token": "tok",
                "game_id": "516575",
                "language": "en",
                "tags": ["valorant", "gaming"],
                "pipeline": "vertical",
            }
        ],
        "pipelines": [
            {
                "name": "vertical",
                "steps": [
                    {"type": "fps", "target_fps": 30},
                    {"type": "vertical_blur", "name": "blur"},
                ],
            }
        ],
        "downloader": {"type": "yt_dlp"},
        "ledger": {"type": "sqlite", "path": str(tmp_path / "ledger.db")},
        "stager": {
            "type": "r2",
            "account_id": "acct",
            "access_key": "ak",
            "secret_key": "sk",
            "bucket": "clips",
            "public_url": "https://cdn.example.com",
        },
        "publishers": [
            {"name": "reels", "type": "instagram", "account_id": "1", "access_token": "t"},
            {"name": "dry", "type": "noop"},
        ],
    }


def test_build_context_wires_every_component(tmp_path: Path) -> None:
    context = build_context(_document(tmp_path))

    assert context.name == "nightly"
    assert context.posts == 3
    assert context.work_dir == tmp_path / "work"
    source = context.sources[0]
    assert isinstance(source, TwitchSource)
    assert source.tags == ("valorant", "gaming")
    pipeline = context.pipeline_for(source)
    assert pipeline is not None
    assert [type(step) for step in pipeline.steps] == [FpsStep, VerticalBlurStep]
    assert pipeline.steps[1].name == "blur"
    assert isinstance(context.downloader, YtDlpDownloader)
    assert isinstance(context.ledger, SqliteLedger)
    assert isinstance(context.stager, R2Stager)
    assert context.stager.endpoint == "https://acct.r2.cloudflarestorage.com"
    assert [type(p) for p in context.publishers] == [InstagramGraphPublisher, NoOpPublisher]


def test_optional_blocks_may_be_omitted(tmp_path: Path) -> None:
    document = _document(tmp_path)
    for key in ("ledger", "stager", "pipelines"):
        document.pop(key)
    document["sources"][0].pop("pipeline")

    context = build_context(document)

    assert context.ledger is None
    assert context.stager is None
    assert dict(context.pipelines) == {}


def _mutations():
    def unknown_pipeline(doc):
        doc["sources"][0]["pipeline"] = "missing"

    def no_downloader(doc):
        doc.pop("downloader")

    def no_sources(doc):
        doc["sources"] = []

    def no_publishers(doc):
        doc["publishers"] = []

    def bad_posts(doc):
        doc["posts"] = 0

    def blank_name(doc):
        doc["name"] = " "

    def duplicate_publishers(doc):
        doc["publishers"].append({"name": "dry", "type": "noop"})

    def duplicate_pipelines(doc):
        doc["pipelines"].append({"name": "vertical", "steps": []})

    def unknown_publisher_type(doc):
        doc["publishers"][0]["type"] = "tiktok"

    def unknown_top_level_key(doc):
        doc["extra"] = True

    def unknown_source_key(doc):
        doc["sources"][0]["cursor"] = "abc"

    def both_game_and_broadcaster(doc):
        doc["sources"][0]["broadcaster_id"] = "42"

    def language_without_game(doc):
        doc["sources"][0].pop("game_id")
        doc["sources"][0]["broadcaster_id"] = "42"

    def bad_step(doc):
        doc["pipelines"][0]["steps"].append({"type": "music"})

    def local_publisher_with_stager(doc):
        doc["publishers"].append(
            {"name": "private", "type": "instagram_private", "username": "u", "password": "p"}
        )

    return [
        unknown_pipeline,
        no_downloader,
        no_sources,
        no_publishers,
        bad_posts,
        blank_name,
        duplicate_publishers,
        duplicate_pipelines,
        unknown_publisher_type,
        unknown_top_level_key,
        unknown_source_key,
        both_game_and_broadcaster,
        language_without_game,
        bad_step,
        local_publisher_with_stager,
    ]


@pytest.mark.parametrize("mutate", _mutations(), ids=lambda fn: fn.__name__)
def test_invalid_documents_raise_config_error(tmp_path: Path, mutate) -> None:
    document = _document(tmp_path)
    mutate(document)
    with pytest.raises(ConfigError):
        build_context(document)


def test_config_error_names_component_and_key(tmp_path: Path) -> None:
    document = _document(tmp_path)
    document["sources"][0]["limit"] = 0
    with pytest.raises(ConfigError) as excinfo:
        build_context(document)
    assert excinfo.value.component == "valorant"
    assert excinfo.value.details["key"] == "limit"


def test_nameless_block_is_reported_by_position(tmp_path: Path) -> None:
    document = _document(tmp_path)
    document["publishers"][1].pop("name")
    with pytest.raises(ConfigError) as excinfo:
        build_context(document)
    assert excinfo.value.component == "publishers[1]"
    assert excinfo.value.details["key"] == "name"


def test_step_error_names_pipeline_position(tmp_path: Path) -> None:
    document = _document(tmp_path)
    document["pipelines"][0]["steps"][0]["target_fps"] = "fast"
    with pytest.raises(ConfigError) as excinfo:
        build_context(document)
    assert excinfo.value.component == "vertical[0]"
    assert excinfo.value.details["key"] == "target_fps"


def test_stager_public_url_must_be_http(tmp_path: Path) -> None:
    document = _document(tmp_path)
    document["stager"]["public_url"] = "ftp://cdn.example.com"
    with pytest.raises(ConfigError) as excinfo:
        build_context(document)
    assert excinfo.value.component == "stager"
    assert excinfo.value.details["key"] == "public_url"


def test_private_publisher_allowed_without_stager(tmp_path: Path) -> None:
    document = _document(tmp_path)
    document.pop("stager")
    document["publishers"] = [
        {"name": "private", "type": "instagram_private", "username": "u", "password": "p"}
    ]
    context = build_context(document)
    assert isinstance(context.publishers[0], InstagrapiPublisher)


def test_load_config_expands_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_TWITCH_TOKEN", "secret-token")
    document = _document(tmp_path)
    document["sources"][0]["token"] = "${TEST_TWITCH_TOKEN}"
    path = tmp_path / "run.json"
    path.write_text(json.dumps(document), encoding="utf-8")

    context = load_config(path)

    assert context.sources[0].token == "secret-token"


def test_load_config_rejects_unset_variable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TEST_UNSET_VARIABLE", raising=False)
    document = _document(tmp_path)
    document["sources"][0]["token"] = "${TEST_UNSET_VARIABLE}"
    path = tmp_path / "run.json"
    path.write_text(json.dumps(document), encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(path)
    assert "TEST_UNSET_VARIABLE" in str(excinfo.value)


def test_load_config_reports_bad_json(tmp_path: Path) -> None:
    path = tmp_path / "run.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        load_config(path)
    assert str(excinfo.value).startswith("[CONFIG:config] invalid JSON")


def test_load_config_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.json")


def test_load_env_does_not_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_EXISTING", "kept")
    monkeypatch.setenv("TEST_FROM_FILE", "")
    monkeypatch.delenv("TEST_FROM_FILE")
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# comment\nTEST_EXISTING=replaced\nexport TEST_FROM_FILE='quoted value'\n",
        encoding="utf-8",
    )

    load_env(env_file)

    assert os.environ["TEST_EXISTING"] == "kept"
    assert os.environ["TEST_FROM_FILE"] == "quoted value"
