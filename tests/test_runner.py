"""Tests for run orchestration and per-item failure isolation."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from aggregator.common.exceptions import ComponentError, ConfigError
from aggregator.interfaces.media import ClipReference, MediaArtifact, PublishReceipt
from aggregator.pipeline import ItemOutcome, ItemStatus, Pipeline, RunContext, Runner, RunState
from aggregator.steps import TransformStep, derive_output


class StubSource:
    def __init__(self, name: str, clips: list[ClipReference], pipeline: Optional[str] = None) -> None:
        self.name = name
        self.pipeline = pipeline
        self.clips = clips
        self.fetched = 0

    def fetch(self) -> list[ClipReference]:
        self.fetched += 1
        return list(self.clips)


class FailingSource(StubSource):
    def fetch(self) -> list[ClipReference]:
        raise ComponentError(self.name, "api down")


class StubDownloader:
    def __init__(self, fail_ids: tuple[str, ...] = ()) -> None:
        self.downloaded: list[str] = []
        self.fail_ids = fail_ids

    def download(self, clip: ClipReference, target: Path) -> MediaArtifact:
        if target.exists():
            raise ComponentError("download", "target exists")
        self.downloaded.append(clip.id)
        if clip.id in self.fail_ids:
            raise ComponentError("download", "network", {"clip": clip.id})
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(b"video")
        return MediaArtifact.from_clip(clip, target)


class StubLedger:
    def __init__(self, claimed: tuple[str, ...] = (), events: Optional[list[str]] = None) -> None:
        self.claimed = set(claimed)
        self.events = events if events is not None else []
        self.claims: list[tuple[str, str]] = []

    def start(self) -> None:
        self.events.append("ledger.start")

    def stop(self) -> None:
        self.events.append("ledger.stop")

    def claim(self, clip_id: str, run_name: str) -> bool:
        self.claims.append((clip_id, run_name))
        if clip_id in self.claimed:
            return False
        self.claimed.add(clip_id)
        return True


class StubStager:
    def __init__(self, events: list[str], fail_stop: bool = False, fail_clean: bool = False) -> None:
        self.events = events
        self.fail_stop = fail_stop
        self.fail_clean = fail_clean
        self.cleaned: list[str] = []

    def start(self) -> None:
        self.events.append("stager.start")

    def stop(self) -> None:
        self.events.append("stager.stop")
        if self.fail_stop:
            raise ComponentError("stager", "close failed")

    def stage(self, artifact: MediaArtifact) -> MediaArtifact:
        assert artifact.file is not None
        artifact.file.unlink()
        return artifact.with_uri(f"https://cdn.example.com/{artifact.id}.mp4").with_file(None)

    def clean(self, artifact: MediaArtifact) -> None:
        self.cleaned.append(artifact.id)
        if self.fail_clean:
            raise ComponentError("stager", "delete failed")


class StubPublisher:
    def __init__(self, name: str, fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.published: list[MediaArtifact] = []

    def publish(self, artifact: MediaArtifact) -> PublishReceipt:
        self.published.append(artifact)
        if self.fail:
            raise ComponentError(self.name, "rejected")
        return PublishReceipt(id=artifact.id, uri=f"https://example.com/{artifact.id}")


class TagStep(TransformStep):
    def transform(self, artifact: MediaArtifact) -> MediaArtifact:
        target = derive_output(artifact.file, "-tag")
        target.write_bytes(b"tagged")
        return artifact.with_file(target)


def _clips(*ids: str) -> list[ClipReference]:
    return [ClipReference(id=clip_id, url=f"https://clips.example.com/{clip_id}") for clip_id in ids]


def _context(tmp_path: Path, **overrides) -> RunContext:
    fields = dict(
        name="nightly",
        posts=5,
        sources=(StubSource("main", _clips("a")),),
        downloader=StubDownloader(),
        publishers=(StubPublisher("ig"),),
        work_dir=tmp_path / "work",
    )
    fields.update(overrides)
    return RunContext(**fields)


def test_stops_at_target_count(tmp_path: Path) -> None:
    downloader = StubDownloader()
    publisher = StubPublisher("ig")
    ledger = StubLedger()
    context = _context(
        tmp_path,
        posts=2,
        sources=(StubSource("main", _clips("a", "b", "c")),),
        downloader=downloader,
        publishers=(publisher,),
        ledger=ledger,
    )

    report = Runner(context).run()

    assert report.published == 2
    assert downloader.downloaded == ["a", "b"]
    assert [artifact.id for artifact in publisher.published] == ["a", "b"]
    assert [clip_id for clip_id, _ in ledger.claims] == ["a", "b"]


def test_target_count_spans_sources(tmp_path: Path) -> None:
    second = StubSource("second", _clips("x", "y"))
    third = StubSource("third", _clips("z"))
    context = _context(
        tmp_path,
        posts=3,
        sources=(StubSource("first", _clips("a", "b")), second, third),
    )

    report = Runner(context).run()

    assert report.published == 3
    assert second.fetched == 1
    assert third.fetched == 0


def test_rejected_claim_is_never_downloaded_or_published(tmp_path: Path) -> None:
    downloader = StubDownloader()
    publisher = StubPublisher("ig")
    context = _context(
        tmp_path,
        sources=(StubSource("main", _clips("seen", "fresh")),),
        downloader=downloader,
        publishers=(publisher,),
        ledger=StubLedger(claimed=("seen",)),
    )

    report = Runner(context).run()

    assert downloader.downloaded == ["fresh"]
    assert [artifact.id for artifact in publisher.published] == ["fresh"]
    assert report.skipped == 1
    assert report.published == 1


def test_claims_use_run_name(tmp_path: Path) -> None:
    ledger = StubLedger()
    Runner(_context(tmp_path, ledger=ledger)).run()
    assert ledger.claims == [("a", "nightly")]


def test_item_failure_moves_on_to_next_candidate(tmp_path: Path) -> None:
    publisher = StubPublisher("ig")
    context = _context(
        tmp_path,
        sources=(StubSource("main", _clips("bad", "good")),),
        downloader=StubDownloader(fail_ids=("bad",)),
        publishers=(publisher,),
    )

    report = Runner(context).run()

    assert report.failed == 1
    assert report.published == 1
    assert [artifact.id for artifact in publisher.published] == ["good"]


def test_prepared_outcome_without_artifact_counts_as_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    publisher = StubPublisher("ig")
    runner = Runner(_context(tmp_path, publishers=(publisher,)))
    monkeypatch.setattr(runner, "_prepare", lambda *args: ItemOutcome(ItemStatus.PREPARED))

    report = runner.run()

    assert report.failed == 1
    assert report.published == 0
    assert publisher.published == []


def test_source_failure_does_not_abort_run(tmp_path: Path) -> None:
    context = _context(
        tmp_path,
        sources=(FailingSource("down", []), StubSource("up", _clips("a"))),
    )
    report = Runner(context).run()
    assert report.source_failures == 1
    assert report.published == 1


def test_publish_failure_does_not_block_other_destinations(tmp_path: Path) -> None:
    failing = StubPublisher("a", fail=True)
    working = StubPublisher("b")
    context = _context(tmp_path, publishers=(failing, working))

    report = Runner(context).run()

    assert len(failing.published) == 1
    assert len(working.published) == 1
    assert report.publish_failures == 1
    assert report.published == 1


def test_pipeline_output_is_published_and_removed_without_stager(tmp_path: Path) -> None:
    publisher = StubPublisher("ig")
    context = _context(
        tmp_path,
        sources=(StubSource("main", _clips("a"), pipeline="edit"),),
        pipelines={"edit": Pipeline.of("edit", [TagStep("tag")])},
        publishers=(publisher,),
    )

    Runner(context).run()

    published = publisher.published[0]
    assert published.file == tmp_path / "work" / "a-tag.mp4"
    assert not published.file.exists()
    assert list((tmp_path / "work").iterdir()) == []


def test_stager_cleanup_failure_is_not_escalated(tmp_path: Path) -> None:
    events: list[str] = []
    stager = StubStager(events, fail_clean=True)
    publisher = StubPublisher("ig")
    context = _context(tmp_path, stager=stager, publishers=(publisher,))

    report = Runner(context).run()

    assert report.published == 1
    assert stager.cleaned == ["a"]
    assert publisher.published[0].uri == "https://cdn.example.com/a.mp4"
    assert publisher.published[0].file is None


def test_resources_open_and_close_in_order(tmp_path: Path) -> None:
    events: list[str] = []
    runner = Runner(
        _context(tmp_path, ledger=StubLedger(events=events), stager=StubStager(events))
    )
    assert runner.state is RunState.IDLE

    runner.run()

    assert events == ["ledger.start", "stager.start", "stager.stop", "ledger.stop"]
    assert runner.state is RunState.STOPPED


def test_ledger_closes_even_when_stager_close_fails(tmp_path: Path) -> None:
    events: list[str] = []
    context = _context(
        tmp_path, ledger=StubLedger(events=events), stager=StubStager(events, fail_stop=True)
    )

    report = Runner(context).run()

    assert report.published == 1
    assert events[-2:] == ["stager.stop", "ledger.stop"]


def test_resources_close_when_run_crashes(tmp_path: Path) -> None:
    events: list[str] = []

    class ExplodingSource(StubSource):
        def fetch(self) -> list[ClipReference]:
            raise ConfigError(self.name, "bad credentials shape")

    runner = Runner(
        _context(
            tmp_path,
            sources=(ExplodingSource("main", []),),
            ledger=StubLedger(events=events),
            stager=StubStager(events),
        )
    )

    with pytest.raises(ConfigError):
        runner.run()
    assert events == ["ledger.start", "stager.start", "stager.stop", "ledger.stop"]
    assert runner.state is RunState.STOPPED


def test_runner_is_single_use(tmp_path: Path) -> None:
    runner = Runner(_context(tmp_path))
    runner.run()
    with pytest.raises(RuntimeError):
        runner.run()


def test_unknown_pipeline_reference_is_a_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as excinfo:
        _context(tmp_path, sources=(StubSource("main", [], pipeline="missing"),))
    assert "unknown pipeline" in str(excinfo.value)


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "  "},
        {"posts": 0},
        {"sources": ()},
        {"publishers": ()},
        {"publishers": (StubPublisher("ig"), StubPublisher("ig"))},
    ],
)
def test_context_rejects_incomplete_wiring(tmp_path: Path, overrides: dict) -> None:
    with pytest.raises(ConfigError):
        _context(tmp_path, **overrides)
