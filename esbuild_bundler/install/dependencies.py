"""Stage webjar and mvnpm archives into a ``node_modules`` tree."""

from __future__ import annotations

import logging
import shutil
import zipfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Iterable, List

from ..errors import InstallError
from .package_json import find_package_json, read_package_name
from .utils import delete_recursive, unzip

logger = logging.getLogger(__name__)

NODE_MODULES = "node_modules"
STAGING_DIR = "tmp"


class ArchiveLayout(str, Enum):
    WEBJAR = "webjar"
    MVNPM = "mvnpm"

    @property
    def prefix(self) -> str:
        return LAYOUT_PREFIXES[self]


LAYOUT_PREFIXES = {
    ArchiveLayout.WEBJAR: "META-INF/resources/webjars",
    ArchiveLayout.MVNPM: "META-INF/resources/_static",
}


@dataclass(slots=True)
class InstalledPackage:
    name: str
    path: Path
    archive: Path


@dataclass(slots=True)
class SkippedArchive:
    archive: Path
    reason: str


@dataclass(slots=True)
class InstallReport:
    """What one install pass did with each archive."""

    root: Path
    installed: List[InstalledPackage] = field(default_factory=list)
    skipped: List[SkippedArchive] = field(default_factory=list)

    @property
    def node_modules(self) -> Path:
        return self.root / NODE_MODULES


class DependencyInstaller:
    """Merges archives into ``<root>/node_modules``.

    An archive is processed at most once per root: its staging directory
    under ``<root>/tmp`` marks it as done. The check is by directory only, so
    an archive rebuilt under the same file name is not picked up until the
    root is cleared. When two archives declare the same package name the
    first one installed is kept.
    """

    def install(self, root: Path, archives: Iterable[Path], layout: ArchiveLayout) -> InstallReport:
        root = Path(root)
        layout = ArchiveLayout(layout)
        report = InstallReport(root=root)
        node_modules = root / NODE_MODULES
        staging_root = root / STAGING_DIR
        try:
            node_modules.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise InstallError(f"Unable to create {node_modules}: {exc}", path=node_modules) from exc

        for archive in archives:
            self._install_archive(Path(archive), layout, node_modules, staging_root, report)
        return report

    def clear(self, root: Path) -> None:
        """Remove the merged ``node_modules`` tree under ``root``."""

        target = Path(root) / NODE_MODULES
        try:
            delete_recursive(target)
        except OSError as exc:
            raise InstallError(f"Unable to remove {target}: {exc}", path=target) from exc

    def _install_archive(
        self,
        archive: Path,
        layout: ArchiveLayout,
        node_modules: Path,
        staging_root: Path,
        report: InstallReport,
    ) -> None:
        extract_dir = staging_root / archive.stem
        if extract_dir.is_dir():
            report.skipped.append(SkippedArchive(archive=archive, reason="already extracted"))
            return

        try:
            unzip(archive, extract_dir)
        except (OSError, zipfile.BadZipFile) as exc:
            # A partial staging directory would mark the archive as done.
            shutil.rmtree(extract_dir, ignore_errors=True)
            raise InstallError(f"Unable to extract {archive}: {exc}", archive=archive, path=extract_dir) from exc

        try:
            self._place_package(archive, layout, node_modules, extract_dir, report)
        except InstallError:
            shutil.rmtree(extract_dir, ignore_errors=True)
            raise

    def _place_package(
        self,
        archive: Path,
        layout: ArchiveLayout,
        node_modules: Path,
        extract_dir: Path,
        report: InstallReport,
    ) -> None:
        package_json = find_package_json(extract_dir / layout.prefix)
        if package_json is None:
            logger.info("package.json not found in package '%s'", archive.name)
            report.skipped.append(SkippedArchive(archive=archive, reason="package.json not found"))
            return

        try:
            package_name = read_package_name(package_json)
        except (OSError, ValueError) as exc:
            raise InstallError(f"Unable to read package name from {package_json}: {exc}", archive=archive, path=package_json) from exc

        target = node_modules.joinpath(*_name_parts(package_name, archive))
        if target.is_dir():
            logger.info("skipping package as it already exists '%s'", target)
            report.skipped.append(SkippedArchive(archive=archive, reason=f"{package_name} already installed"))
            return

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(package_json.parent), str(target))
        except OSError as exc:
            raise InstallError(f"Unable to move {package_json.parent} to {target}: {exc}", archive=archive, path=target) from exc

        logger.debug("installed %s from %s", package_name, archive.name)
        report.installed.append(InstalledPackage(name=package_name, path=target, archive=archive))


def _name_parts(package_name: str, archive: Path) -> tuple[str, ...]:
    parts = PurePosixPath(package_name).parts
    if not parts or package_name.startswith("/") or any(part in {"..", "."} for part in parts):
        raise InstallError(f"Invalid package name '{package_name}' in {archive.name}", archive=archive)
    return parts


def install(root: Path, archives: Iterable[Path], layout: ArchiveLayout) -> Path:
    """Install ``archives`` into ``root`` and return ``root``."""

    return DependencyInstaller().install(root, archives, layout).root


def clear(root: Path) -> None:
    DependencyInstaller().clear(root)
