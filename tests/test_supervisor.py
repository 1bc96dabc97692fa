from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import List

import pytest

from esbuild_bundler.errors import ExecutionError, MalformedEventError
from esbuild_bundler.process.supervisor import CallbackListener, ProcessSupervisor
from esbuild_bundler.schemas.build import BuildEvent, EsBuildConfig


class RecordingListener:
    def __init__(self, expected: int = 0) -> None:
        self.events: List[BuildEvent] = []
        self.malformed: List[MalformedEventError] = []
        self.expected = expected
        self.done = threading.Event()

    def on_build(self, event: BuildEvent) -> None:
        self.events.append(event)
        self._check()

    def on_malformed(self, error: MalformedEventError) -> None:
        self.malformed.append(error)
        self._check()

    def _check(self) -> None:
        if len(self.events) + len(self.malformed) >= self.expected:
            self.done.set()


def _config(tmp_path: Path) -> EsBuildConfig:
    outdir = tmp_path / "dist"
    outdir.mkdir(exist_ok=True)
    entry = tmp_path / "main.js"
    entry.write_text("console.log('hi');\n", encoding="utf-8")
    return EsBuildConfig(entry_points=[str(entry)], outdir=str(outdir))


def _events_file(tmp_path: Path, lines: List[str]) -> Path:
    path = tmp_path / "events.jsonl"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _three_events() -> List[str]:
    return [
        json.dumps({"success": True}),
        json.dumps(
            {
                "success": False,
                "errors": [
                    {"text": "Could not resolve \"lit\"", "location": {"file": "main.js", "line": 1, "column": 7}},
                    {"text": "Unexpected \"}\"", "location": {"file": "main.js", "line": 9, "column": 0}},
                ],
            }
        ),
        json.dumps({"success": True}),
    ]


def _watch_supervisor(events: Path, **extra: str) -> ProcessSupervisor:
    env = {"FAKE_ESBUILD_MODE": "watch", "FAKE_ESBUILD_EVENTS": str(events), **extra}
    return ProcessSupervisor(env=env)


def test_run_once_captures_output(tmp_path: Path, fake_esbuild: Path) -> None:
    config = _config(tmp_path)
    supervisor = ProcessSupervisor(env={"FAKE_ESBUILD_MODE": "ok"})

    result = supervisor.run_once(fake_esbuild, config)

    assert result.returncode == 0
    assert "--outdir=" in result.output
    assert (tmp_path / "dist" / "main.js").is_file()


def test_run_once_merges_failure_output(tmp_path: Path, fake_esbuild: Path) -> None:
    supervisor = ProcessSupervisor(env={"FAKE_ESBUILD_MODE": "fail"})

    result = supervisor.run_once(fake_esbuild, _config(tmp_path))

    assert result.returncode == 1
    assert "[ERROR]" in result.output


def test_spawn_failure_raises_execution_error(tmp_path: Path) -> None:
    supervisor = ProcessSupervisor()
    missing = tmp_path / "nope" / "esbuild"

    with pytest.raises(ExecutionError):
        supervisor.run_once(missing, _config(tmp_path))
    with pytest.raises(ExecutionError):
        supervisor.run_watched(missing, _config(tmp_path), lambda event: None)


def test_watch_events_delivered_in_order(tmp_path: Path, fake_esbuild: Path) -> None:
    supervisor = _watch_supervisor(_events_file(tmp_path, _three_events()))
    listener = RecordingListener(expected=3)

    handle = supervisor.run_watched(fake_esbuild, _config(tmp_path), listener)
    try:
        assert handle.is_alive()
        assert listener.done.wait(10)
    finally:
        handle.terminate(timeout=2)

    assert [event.success for event in listener.events] == [True, False, True]
    assert len(listener.events[1].errors) == 2
    assert listener.malformed == []


def test_watch_reassembles_split_writes(tmp_path: Path, fake_esbuild: Path) -> None:
    supervisor = _watch_supervisor(_events_file(tmp_path, _three_events()), FAKE_ESBUILD_SPLIT="1")
    listener = RecordingListener(expected=3)

    handle = supervisor.run_watched(fake_esbuild, _config(tmp_path), listener)
    try:
        assert listener.done.wait(10)
    finally:
        handle.terminate(timeout=2)

    assert [len(event.errors) for event in listener.events] == [0, 2, 0]


def test_listener_failure_does_not_stop_stream(tmp_path: Path, fake_esbuild: Path) -> None:
    supervisor = _watch_supervisor(_events_file(tmp_path, _three_events()))
    seen: List[bool] = []
    done = threading.Event()

    def on_build(event: BuildEvent) -> None:
        seen.append(event.success)
        if len(seen) == 3:
            done.set()
        if len(seen) == 1:
            raise RuntimeError("listener bug")

    handle = supervisor.run_watched(fake_esbuild, _config(tmp_path), on_build)
    try:
        assert done.wait(10)
    finally:
        handle.terminate(timeout=2)

    assert seen == [True, False, True]


def test_malformed_event_reported_and_session_survives(tmp_path: Path, fake_esbuild: Path) -> None:
    events = _events_file(tmp_path, ['{"success": tru', json.dumps({"success": True})])
    supervisor = _watch_supervisor(events)
    malformed: List[MalformedEventError] = []
    builds: List[BuildEvent] = []
    done = threading.Event()

    def on_build(event: BuildEvent) -> None:
        builds.append(event)
        done.set()

    handle = supervisor.run_watched(fake_esbuild, _config(tmp_path), CallbackListener(on_build, malformed.append))
    try:
        assert done.wait(10)
        assert handle.is_alive()
    finally:
        handle.terminate(timeout=2)

    assert len(malformed) == 1
    assert malformed[0].line == '{"success": tru'
    assert builds[0].success


def test_terminate_is_idempotent_and_stops_delivery(tmp_path: Path, fake_esbuild: Path) -> None:
    supervisor = _watch_supervisor(_events_file(tmp_path, [json.dumps({"success": True})]))
    listener = RecordingListener(expected=1)

    handle = supervisor.run_watched(fake_esbuild, _config(tmp_path), listener)
    assert listener.done.wait(10)

    handle.terminate(timeout=2)
    assert not handle.is_alive()
    returncode = handle.returncode
    assert handle.terminate(timeout=2) == returncode

    time.sleep(0.2)
    assert len(listener.events) == 1


def test_terminate_kills_after_grace_period(tmp_path: Path, fake_esbuild: Path) -> None:
    supervisor = _watch_supervisor(
        _events_file(tmp_path, [json.dumps({"success": True})]),
        FAKE_ESBUILD_IGNORE_TERM="1",
    )
    listener = RecordingListener(expected=1)

    handle = supervisor.run_watched(fake_esbuild, _config(tmp_path), listener)
    assert listener.done.wait(10)

    started = time.monotonic()
    handle.terminate(timeout=0.5)

    assert not handle.is_alive()
    assert time.monotonic() - started < 5
