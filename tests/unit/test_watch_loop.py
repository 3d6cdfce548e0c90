from __future__ import annotations

from pathlib import Path
from threading import Event, Thread, Timer
from typing import Iterator, List

import pytest
import watchfiles

from easl_cli import watch as watch_module
from easl_cli.config import WatchConfig
from easl_cli.errors import CompileError, WatchChannelError, WatchInitError
from easl_cli.watch import (
    ANY_CONTENT_CHANGE,
    ChangeBatch,
    ChangeKind,
    WatchLoop,
    extension_filter,
    file_filter,
    watch_changes,
)


class Recorder:
    def __init__(self, fail_on: str = "") -> None:
        self.calls: List[tuple[str, str]] = []
        self.fail_on = fail_on

    def __call__(self, path: Path, content: str) -> None:
        self.calls.append((path.name, content))
        if self.fail_on and self.fail_on in content:
            raise CompileError(["bad"], CompileError.PARSE, path)


def make_loop(root: Path, on_change: Recorder, **kwargs) -> WatchLoop:
    return WatchLoop(root, on_change, extension_filter("easl"), **kwargs)


def test_modify_with_new_content_runs_once(tmp_path: Path) -> None:
    file = tmp_path / "a.easl"
    file.write_text("v1", encoding="utf-8")
    rec = Recorder()
    loop = make_loop(tmp_path, rec)

    assert loop.handle(ChangeKind.MODIFY, file)
    assert not loop.handle(ChangeKind.MODIFY, file)

    assert rec.calls == [("a.easl", "v1")]


def test_seeded_content_absorbs_spurious_events(tmp_path: Path) -> None:
    file = tmp_path / "a.easl"
    file.write_text("v1", encoding="utf-8")
    rec = Recorder()
    loop = make_loop(tmp_path, rec)
    loop.seed([file, tmp_path / "missing.easl"])

    assert not loop.handle(ChangeKind.MODIFY, file)
    file.write_text("v2", encoding="utf-8")
    assert loop.handle(ChangeKind.MODIFY, file)

    assert rec.calls == [("a.easl", "v2")]


def test_non_modify_events_and_other_extensions_are_ignored(tmp_path: Path) -> None:
    file = tmp_path / "a.easl"
    file.write_text("v1", encoding="utf-8")
    other = tmp_path / "a.wgsl"
    other.write_text("out", encoding="utf-8")
    rec = Recorder()
    loop = make_loop(tmp_path, rec)

    assert not loop.handle(ChangeKind.CREATE, file)
    assert not loop.handle(ChangeKind.REMOVE, file)
    assert not loop.handle(ChangeKind.OTHER, file)
    assert not loop.handle(ChangeKind.MODIFY, other)
    assert rec.calls == []


def test_failed_attempt_still_updates_cache(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    file = tmp_path / "a.easl"
    rec = Recorder(fail_on="broken")
    loop = make_loop(tmp_path, rec)

    file.write_text("broken", encoding="utf-8")
    assert loop.handle(ChangeKind.MODIFY, file)
    assert not loop.handle(ChangeKind.MODIFY, file)
    assert "failed due to parsing error" in capsys.readouterr().err

    file.write_text("fixed", encoding="utf-8")
    assert loop.handle(ChangeKind.MODIFY, file)
    file.write_text("broken", encoding="utf-8")
    assert loop.handle(ChangeKind.MODIFY, file)

    assert [content for _, content in rec.calls] == ["broken", "fixed", "broken"]


def test_read_failure_does_not_touch_cache(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    file = tmp_path / "a.easl"
    rec = Recorder()
    loop = make_loop(tmp_path, rec, kinds=ANY_CONTENT_CHANGE)

    assert not loop.handle(ChangeKind.REMOVE, file)
    assert "Failed to read input file" in capsys.readouterr().err
    assert file not in loop.cache

    file.write_text("v1", encoding="utf-8")
    assert loop.handle(ChangeKind.CREATE, file)


def test_run_processes_synthetic_batches_in_order(tmp_path: Path) -> None:
    a = tmp_path / "a.easl"
    b = tmp_path / "sub" / "b.easl"
    b.parent.mkdir()
    a.write_text("a1", encoding="utf-8")
    b.write_text("b1", encoding="utf-8")
    rec = Recorder(fail_on="a1")
    events: List[ChangeBatch] = [
        [(ChangeKind.MODIFY, a), (ChangeKind.MODIFY, b)],
        [(ChangeKind.MODIFY, a), (ChangeKind.CREATE, tmp_path / "new.easl")],
    ]
    loop = make_loop(tmp_path, rec, events=events)

    loop.run()

    assert rec.calls == [("a.easl", "a1"), ("b.easl", "b1")]


def test_channel_failure_ends_the_loop(tmp_path: Path) -> None:
    file = tmp_path / "a.easl"
    file.write_text("v1", encoding="utf-8")

    def events() -> Iterator[ChangeBatch]:
        yield [(ChangeKind.MODIFY, file)]
        raise WatchChannelError(tmp_path, RuntimeError("channel closed"))

    rec = Recorder()
    loop = make_loop(tmp_path, rec, events=events())

    with pytest.raises(WatchChannelError, match="channel closed"):
        loop.run()
    assert rec.calls == [("a.easl", "v1")]


def test_thread_records_watch_failure(tmp_path: Path) -> None:
    def events() -> Iterator[ChangeBatch]:
        yield []
        raise WatchChannelError(tmp_path, RuntimeError("gone"))

    loop = make_loop(tmp_path, Recorder(), events=events())
    thread = loop.start()
    thread.join(timeout=5)

    assert isinstance(loop.error, WatchChannelError)
    loop.stop()


def test_setup_failure_is_raised_by_start(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_watch(*args: object, **kwargs: object) -> Iterator[set]:
        raise OSError(24, "Too many open files")
        yield set()

    monkeypatch.setattr(watch_module.watchfiles, "watch", broken_watch)
    loop = make_loop(tmp_path, Recorder())

    with pytest.raises(WatchInitError, match="Too many open files"):
        loop.start()
    assert loop.thread is None


def test_changes_are_mapped_from_watchfiles(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    raw = [
        {(watchfiles.Change.modified, str(tmp_path / "b.easl")), (watchfiles.Change.added, str(tmp_path / "a.easl"))},
        {(watchfiles.Change.deleted, str(tmp_path / "c.easl"))},
    ]
    monkeypatch.setattr(watch_module.watchfiles, "watch", lambda *args, **kwargs: iter(raw))

    batches = list(watch_changes(tmp_path))

    assert batches == [
        [(ChangeKind.CREATE, tmp_path / "a.easl"), (ChangeKind.MODIFY, tmp_path / "b.easl")],
        [(ChangeKind.REMOVE, tmp_path / "c.easl")],
    ]


def test_real_watcher_reports_edits_in_ignored_looking_directories(tmp_path: Path) -> None:
    root = tmp_path.resolve()
    target = root / "node_modules" / "x.easl"
    target.parent.mkdir()
    target.write_text("v0", encoding="utf-8")
    stop = Event()
    timer = Timer(10.0, stop.set)
    timer.start()

    def edit() -> None:
        n = 0
        while not stop.wait(0.1):
            n += 1
            target.write_text(f"v{n}", encoding="utf-8")

    writer = Thread(target=edit, daemon=True)
    writer.start()
    seen: List[tuple[ChangeKind, Path]] = []
    try:
        for batch in watch_changes(root, config=WatchConfig(debounce_ms=50, step_ms=10), stop_event=stop):
            seen.extend(batch)
            if (ChangeKind.MODIFY, target) in seen:
                break
    finally:
        stop.set()
        timer.cancel()
        writer.join(timeout=5)

    assert (ChangeKind.MODIFY, target) in seen


def test_file_filter_matches_only_that_file(tmp_path: Path) -> None:
    accepts = file_filter(tmp_path / "shader.easl")

    assert accepts(tmp_path / "shader.easl")
    assert accepts(tmp_path / "." / "shader.easl")
    assert not accepts(tmp_path / "other.easl")


def test_missing_root_fails_before_watching(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    with pytest.raises(WatchInitError, match="Failed to watch path"):
        next(watch_changes(missing))

    loop = make_loop(missing, Recorder())
    with pytest.raises(WatchInitError):
        loop.start()
