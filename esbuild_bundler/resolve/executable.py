"""Resolve and cache the esbuild executable for a pinned version."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tarfile
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Dict, Iterable, Optional

import requests
from requests import Session
from requests.exceptions import RequestException

from ..config import DEFAULT_REGISTRY
from ..errors import ResolutionError
from .platform import binary_member, binary_name, classifier

logger = logging.getLogger(__name__)


class ExecutableCache:
    """Version-keyed cache of extracted esbuild binaries.

    Entries live under ``<cache_dir>/<version>/<classifier>/``. A binary is
    extracted into a private staging directory inside ``cache_dir`` and
    published by renaming that directory into place, so a reader never sees
    a half-written executable. Resolution of one version is serialised by a
    per-version lock; other processes sharing the directory are handled by
    the rename, the loser of the race keeps the winner's entry.
    """

    def __init__(
        self,
        cache_dir: Path,
        *,
        archive_dirs: Iterable[Path] = (),
        registry_url: Optional[str] = DEFAULT_REGISTRY,
        session: Optional[Session] = None,
        classifier_name: Optional[str] = None,
        timeout: float = 60.0,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.archive_dirs = [Path(path) for path in archive_dirs]
        self.registry_url = registry_url.rstrip("/") if registry_url else None
        self.session = session
        self.timeout = timeout
        self._classifier = classifier_name
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def classifier(self) -> str:
        if self._classifier is None:
            self._classifier = classifier()
        return self._classifier

    def entry_path(self, version: str) -> Path:
        name = self.classifier
        return self.cache_dir / version / name / binary_name(name)

    def resolve(self, version: str) -> Path:
        """Return the executable for ``version``, extracting it on first use."""

        if not version or not version.strip():
            raise ResolutionError("esbuild version must not be empty", version=version)
        version = version.strip()

        with self._lock_for(version):
            target = self.entry_path(version)
            if _is_executable(target):
                return target
            return self._populate(version, target)

    def _lock_for(self, version: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(version)
            if lock is None:
                lock = self._locks[version] = threading.Lock()
            return lock

    def _populate(self, version: str, target: Path) -> Path:
        entry_dir = target.parent
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{version}-", dir=self.cache_dir))
        except OSError as exc:
            raise ResolutionError(f"Unable to prepare esbuild cache at {self.cache_dir}: {exc}", version=version) from exc

        try:
            archive = self._locate_archive(version, staging)
            staged_entry = staging / "entry"
            staged_binary = staged_entry / target.name
            self._extract_binary(archive, binary_member(self.classifier), staged_binary, version)
            mode = staged_binary.stat().st_mode
            staged_binary.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

            entry_dir.parent.mkdir(parents=True, exist_ok=True)
            self._publish(staged_entry, target, version)
        except OSError as exc:
            raise ResolutionError(f"Unable to install esbuild {version}: {exc}", version=version) from exc
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info("esbuild %s (%s) available at %s", version, self.classifier, target)
        return target

    def _publish(self, staged_entry: Path, target: Path, version: str) -> None:
        entry_dir = target.parent
        try:
            os.rename(staged_entry, entry_dir)
            return
        except OSError:
            if _is_executable(target):
                logger.debug("esbuild %s already published by another resolver", version)
                return

        # entry_dir exists but holds no usable binary; move it aside and publish once more.
        stale = self.cache_dir / f".stale-{uuid.uuid4().hex}"
        try:
            os.rename(entry_dir, stale)
        except FileNotFoundError:
            pass
        shutil.rmtree(stale, ignore_errors=True)
        try:
            os.rename(staged_entry, entry_dir)
        except OSError as exc:
            if not _is_executable(target):
                raise ResolutionError(
                    f"Unable to publish esbuild {version} to {entry_dir}: {exc}", version=version
                ) from exc
            logger.debug("esbuild %s already published by another resolver", version)

    def _archive_name(self, version: str) -> str:
        return f"{self.classifier}-{version}.tgz"

    def _locate_archive(self, version: str, staging: Path) -> Path:
        archive_name = self._archive_name(version)
        for directory in self.archive_dirs:
            candidate = directory / archive_name
            if candidate.is_file():
                logger.debug("Using local esbuild archive %s", candidate)
                return candidate

        if self.registry_url is None:
            searched = ", ".join(str(path) for path in self.archive_dirs) or "<none>"
            raise ResolutionError(
                f"esbuild archive {archive_name} not found (searched: {searched})",
                version=version,
            )
        return self._download(version, staging / archive_name)

    def _download(self, version: str, destination: Path) -> Path:
        name = self.classifier
        url = f"{self.registry_url}/@esbuild/{name}/-/{name}-{version}.tgz"
        logger.info("Downloading esbuild %s from %s", version, url)
        http = self.session or requests
        try:
            response = http.get(url, stream=True, timeout=self.timeout)
            response.raise_for_status()
            with destination.open("wb") as handle:
                for chunk in response.iter_content(chunk_size=1024 * 1024):
                    if chunk:
                        handle.write(chunk)
        except RequestException as exc:
            raise ResolutionError(f"Unable to download esbuild {version} from {url}: {exc}", version=version) from exc
        return destination

    def _extract_binary(self, archive: Path, member_name: str, destination: Path, version: str) -> None:
        try:
            with tarfile.open(archive, "r:gz") as bundle:
                try:
                    member = bundle.getmember(member_name)
                except KeyError as exc:
                    raise ResolutionError(
                        f"esbuild archive {archive.name} has no {member_name}",
                        version=version,
                    ) from exc
                source = bundle.extractfile(member)
                if source is None:
                    raise ResolutionError(f"{member_name} in {archive.name} is not a file", version=version)
                destination.parent.mkdir(parents=True, exist_ok=True)
                with source, destination.open("wb") as handle:
                    shutil.copyfileobj(source, handle)
        except tarfile.TarError as exc:
            raise ResolutionError(f"Unable to extract esbuild archive {archive}: {exc}", version=version) from exc


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)
