"""Spawn esbuild and collect its output."""

from __future__ import annotations

import codecs
import logging
import os
import queue
import subprocess
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Union

from ..config import DEFAULT_STOP_TIMEOUT
from ..errors import ExecutionError, MalformedEventError
from ..schemas.build import BuildEvent, EsBuildConfig, ExecuteResult
from .events import BuildEventDecoder, DecodedItem

logger = logging.getLogger(__name__)


class BuildEventListener(Protocol):
    def on_build(self, event: BuildEvent) -> None:  # pragma: no cover - interface
        ...

    def on_malformed(self, error: MalformedEventError) -> None:  # pragma: no cover - optional hook
        ...


class CallbackListener:
    """Adapts plain callables to the listener protocol."""

    def __init__(
        self,
        on_build: Callable[[BuildEvent], None],
        on_malformed: Optional[Callable[[MalformedEventError], None]] = None,
    ) -> None:
        self._on_build = on_build
        self._on_malformed = on_malformed

    def on_build(self, event: BuildEvent) -> None:
        self._on_build(event)

    def on_malformed(self, error: MalformedEventError) -> None:
        if self._on_malformed is None:
            logger.warning("Malformed build event: %s", error)
            return
        self._on_malformed(error)


ListenerLike = Union[BuildEventListener, Callable[[BuildEvent], None]]


def as_listener(listener: ListenerLike) -> BuildEventListener:
    if hasattr(listener, "on_build"):
        return listener  # type: ignore[return-value]
    if callable(listener):
        return CallbackListener(listener)
    raise TypeError(f"Unsupported build event listener: {listener!r}")


_CLOSED = object()


class WatchHandle:
    """A running ``esbuild --watch`` process and its event pump.

    A reader thread decodes the process output and publishes events on a
    queue; a dispatcher thread drains the queue into the listener one event
    at a time. ``terminate`` closes the queue before stopping the process so
    nothing is delivered afterwards.
    """

    def __init__(self, process: subprocess.Popen, listener: BuildEventListener) -> None:
        self.process = process
        self._listener = listener
        self._channel: "queue.Queue[object]" = queue.Queue()
        self._closed = threading.Event()
        self._stop_lock = threading.Lock()
        self._terminated = False
        self._reader = threading.Thread(target=self._read, name=f"esbuild-reader-{process.pid}", daemon=True)
        self._dispatcher = threading.Thread(target=self._dispatch, name=f"esbuild-events-{process.pid}", daemon=True)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.poll()

    def start(self) -> None:
        self._dispatcher.start()
        self._reader.start()

    def is_alive(self) -> bool:
        return self.process.poll() is None

    def terminate(self, timeout: float = DEFAULT_STOP_TIMEOUT) -> Optional[int]:
        """Stop event delivery and the process; later calls are no-ops."""

        with self._stop_lock:
            if self._terminated:
                return self.process.returncode
            self._terminated = True
            self._closed.set()
            self._channel.put(_CLOSED)

            if self.process.poll() is None:
                self.process.terminate()
                try:
                    self.process.wait(timeout=timeout)
                except subprocess.TimeoutExpired:
                    logger.warning("esbuild (pid %s) ignored SIGTERM for %.1fs; killing", self.pid, timeout)
                    self.process.kill()
                    self.process.wait()
            if self.process.stdin is not None:
                self.process.stdin.close()

            current = threading.current_thread()
            for thread in (self._reader, self._dispatcher):
                if thread.is_alive() and thread is not current:
                    thread.join(timeout=timeout)
            if self.process.stdout is not None and not self._reader.is_alive():
                self.process.stdout.close()
            return self.process.returncode

    def _read(self) -> None:
        stream = self.process.stdout
        decoder = BuildEventDecoder()
        text = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                if self._closed.is_set():
                    return
                chunk = stream.read1(8192)
                if not chunk:
                    break
                self._publish(decoder.feed(text.decode(chunk)))
            self._publish(decoder.feed(text.decode(b"", final=True)))
            self._publish(decoder.close())
        except (OSError, ValueError) as exc:
            if not self._closed.is_set():
                logger.warning("esbuild output stream failed: %s", exc)
        finally:
            self._channel.put(_CLOSED)

    def _publish(self, items: List[DecodedItem]) -> None:
        for item in items:
            self._channel.put(item)

    def _dispatch(self) -> None:
        while True:
            item = self._channel.get()
            if item is _CLOSED or self._closed.is_set():
                return
            try:
                if isinstance(item, MalformedEventError):
                    on_malformed = getattr(self._listener, "on_malformed", None)
                    if on_malformed is None:
                        logger.warning("Malformed build event: %s", item)
                    else:
                        on_malformed(item)
                else:
                    self._listener.on_build(item)  # type: ignore[arg-type]
            except Exception:
                logger.warning("Build event listener raised; continuing", exc_info=True)


class ProcessSupervisor:
    """Runs esbuild either to completion or in watch mode."""

    def __init__(self, *, cwd: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> None:
        self.cwd = cwd
        self.env = env

    def command(self, executable: Path, config: EsBuildConfig) -> List[str]:
        return [str(executable), *config.to_args()]

    def run_once(self, executable: Path, config: EsBuildConfig) -> ExecuteResult:
        """Run esbuild, wait for it, and return its exit status and output."""

        cmd = self.command(executable, config)
        logger.debug("running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                cwd=self._cwd(),
                env=self._env(),
            )
        except OSError as exc:
            raise ExecutionError(f"Unable to start esbuild at {executable}: {exc}") from exc
        return ExecuteResult(returncode=proc.returncode, output=proc.stdout or "")

    def run_watched(self, executable: Path, config: EsBuildConfig, listener: ListenerLike) -> WatchHandle:
        """Start esbuild in watch mode and return once the process is running."""

        cmd = self.command(executable, config)
        logger.debug("watching with %s", " ".join(cmd))
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                cwd=self._cwd(),
                env=self._env(),
            )
        except OSError as exc:
            raise ExecutionError(f"Unable to start esbuild at {executable}: {exc}") from exc
        handle = WatchHandle(process, as_listener(listener))
        handle.start()
        return handle

    def _cwd(self) -> Optional[str]:
        return str(self.cwd) if self.cwd else None

    def _env(self) -> Optional[Dict[str, str]]:
        if self.env is None:
            return None
        return {**os.environ, **self.env}
