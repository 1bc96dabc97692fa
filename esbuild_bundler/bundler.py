"""Bundle webjar and mvnpm dependencies with esbuild."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import BundlerSettings
from .entries import Entry
from .errors import ExecutionError, InstallError
from .install.dependencies import NODE_MODULES, ArchiveLayout, DependencyInstaller, InstallReport
from .install.utils import delete_recursive
from .process.supervisor import ListenerLike, ProcessSupervisor
from .process.watch import DIST, WatchSession
from .resolve.executable import ExecutableCache
from .schemas.build import BundleResult, EsBuildConfig

logger = logging.getLogger(__name__)


class BundleOptions(BaseModel):
    """Inputs for one bundle or watch call."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    dependencies: List[Path] = Field(default_factory=list)
    layout: ArchiveLayout = ArchiveLayout.MVNPM
    entries: List[Entry] = Field(default_factory=list)
    work_dir: Optional[Path] = None
    esbuild_config: EsBuildConfig = Field(default_factory=EsBuildConfig)


class BundleOrchestrator:
    """Installs dependencies, prepares ``dist`` and runs esbuild."""

    def __init__(
        self,
        settings: Optional[BundlerSettings] = None,
        *,
        executables: Optional[ExecutableCache] = None,
        installer: Optional[DependencyInstaller] = None,
        supervisor: Optional[ProcessSupervisor] = None,
    ) -> None:
        self.settings = settings or BundlerSettings.from_env()
        self.executables = executables or ExecutableCache(
            self.settings.cache_dir,
            archive_dirs=self.settings.archive_dirs,
            registry_url=self.settings.registry_url,
        )
        self.installer = installer or DependencyInstaller()
        self.supervisor = supervisor or ProcessSupervisor()

    @property
    def esbuild_version(self) -> str:
        return self.settings.esbuild_version

    def bundle(self, options: BundleOptions) -> BundleResult:
        """Run esbuild once and return the populated ``dist`` directory."""

        work_dir = self.install_if_needed(options)
        dist = work_dir / DIST
        config = self._configure(options, work_dir, dist)

        executable = self.executables.resolve(self.esbuild_version)
        result = self.supervisor.run_once(executable, config)
        if not dist.is_dir():
            raise ExecutionError(
                f"esbuild did not produce {dist}",
                result.output,
                returncode=result.returncode,
            )
        if result.returncode != 0:
            raise ExecutionError(
                f"esbuild exited with status {result.returncode}",
                result.output,
                returncode=result.returncode,
            )
        return BundleResult(dist=dist, result=result)

    def watch(self, options: BundleOptions, listener: ListenerLike) -> WatchSession:
        """Start esbuild in watch mode; events go to ``listener`` until stopped."""

        work_dir = self.install_if_needed(options)
        dist = work_dir / DIST
        config = self._configure(options, work_dir, dist)
        config.watch = True

        executable = self.executables.resolve(self.esbuild_version)
        handle = self.supervisor.run_watched(executable, config, listener)
        logger.info("esbuild watching %s (pid %s)", work_dir, handle.pid)
        return WatchSession(
            handle,
            work_dir,
            installer=self.installer,
            stop_timeout=self.settings.stop_timeout,
        )

    def install_if_needed(self, options: BundleOptions) -> Path:
        """Return ``work_dir`` untouched when it already has dependencies installed."""

        if options.work_dir is not None:
            node_modules = Path(options.work_dir) / NODE_MODULES
            if node_modules.is_dir() and any(node_modules.iterdir()):
                logger.debug("dependencies already installed in %s", node_modules)
                return Path(options.work_dir)
        return self.install(options).root

    def install(self, options: BundleOptions) -> InstallReport:
        if options.work_dir is not None:
            work_dir = Path(options.work_dir)
        else:
            work_dir = Path(tempfile.mkdtemp(prefix="bundle"))
        return self.installer.install(work_dir, options.dependencies, options.layout)

    def clear_dependencies(self, work_dir: Path) -> None:
        self.installer.clear(work_dir)

    def _configure(self, options: BundleOptions, work_dir: Path, dist: Path) -> EsBuildConfig:
        try:
            delete_recursive(dist)
            dist.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise InstallError(f"Unable to reset output directory {dist}: {exc}", path=dist) from exc

        config = options.esbuild_config.model_copy(deep=True)
        entry_points = [str(entry.process(work_dir)) for entry in options.entries]
        if entry_points:
            config.entry_points = entry_points
        config.outdir = str(dist)
        return config
