"""Watch sessions returned by :meth:`BundleOrchestrator.watch`."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from ..config import DEFAULT_STOP_TIMEOUT
from ..install.dependencies import ArchiveLayout, DependencyInstaller, InstallReport
from .supervisor import WatchHandle

DIST = "dist"


class WatchSession:
    """Owns one running esbuild watch process and the root it builds from.

    Stopping the session leaves ``node_modules`` in place; call
    :meth:`BundleOrchestrator.clear_dependencies` to remove it.
    """

    def __init__(
        self,
        handle: WatchHandle,
        work_dir: Path,
        *,
        installer: Optional[DependencyInstaller] = None,
        stop_timeout: float = DEFAULT_STOP_TIMEOUT,
    ) -> None:
        self._handle = handle
        self.work_dir = Path(work_dir)
        self.stop_timeout = stop_timeout
        self._installer = installer or DependencyInstaller()

    @property
    def dist(self) -> Path:
        return self.work_dir / DIST

    @property
    def pid(self) -> int:
        return self._handle.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._handle.returncode

    def is_alive(self) -> bool:
        return self._handle.is_alive()

    def change(self, archives: Iterable[Path], layout: ArchiveLayout) -> InstallReport:
        """Install further archives into the watched root."""

        return self._installer.install(self.work_dir, archives, layout)

    def stop(self) -> None:
        self._handle.terminate(self.stop_timeout)

    def __enter__(self) -> "WatchSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
