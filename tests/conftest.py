from __future__ import annotations

import io
import json
import stat
import sys
import tarfile
import zipfile
from pathlib import Path
from typing import Callable, Dict, Optional

import pytest

from esbuild_bundler.install.dependencies import ArchiveLayout
from esbuild_bundler.resolve.executable import ExecutableCache

TEST_CLASSIFIER = "linux-x64"
TEST_VERSION = "0.17.19"

FAKE_ESBUILD = r'''
import os
import shutil
import signal
import sys
import time

args = sys.argv[1:]
outdir = next((arg.split("=", 1)[1] for arg in args if arg.startswith("--outdir=")), None)
entries = [arg for arg in args if not arg.startswith("--")]
mode = os.environ.get("FAKE_ESBUILD_MODE", "ok")

if mode == "ok":
    for entry in entries:
        name = os.path.splitext(os.path.basename(entry))[0]
        with open(os.path.join(outdir, name + ".js"), "w") as handle:
            handle.write("// bundled " + entry + "\n")
    print("built " + " ".join(args))
    sys.exit(0)

if mode == "no-output":
    shutil.rmtree(outdir, ignore_errors=True)
    print("nothing to bundle")
    sys.exit(0)

if mode == "fail":
    print('X [ERROR] Could not resolve "missing"')
    sys.exit(1)

if mode == "watch":
    if os.environ.get("FAKE_ESBUILD_IGNORE_TERM"):
        signal.signal(signal.SIGTERM, signal.SIG_IGN)
    with open(os.environ["FAKE_ESBUILD_EVENTS"], "rb") as handle:
        payload = handle.read()
    split = os.environ.get("FAKE_ESBUILD_SPLIT")
    chunks = [payload[i:i + 7] for i in range(0, len(payload), 7)] if split else payload.splitlines(True)
    for chunk in chunks:
        sys.stdout.buffer.write(chunk)
        sys.stdout.buffer.flush()
        time.sleep(0.01)
    while True:
        time.sleep(0.1)

sys.exit(2)
'''


def _write_fake_esbuild(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"#!{sys.executable}\n{FAKE_ESBUILD}", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture()
def fake_esbuild(tmp_path: Path) -> Path:
    if sys.platform.startswith("win"):
        pytest.skip("fake esbuild relies on a shebang script")
    return _write_fake_esbuild(tmp_path / "bin" / "esbuild")


def create_esbuild_tarball(path: Path, binary: Optional[bytes], *, member: str = "package/bin/esbuild") -> Path:
    """Write an npm-style ``@esbuild/<platform>`` tarball."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as bundle:
        manifest = json.dumps({"name": "@esbuild/linux-x64", "version": TEST_VERSION}).encode("utf-8")
        info = tarfile.TarInfo("package/package.json")
        info.size = len(manifest)
        bundle.addfile(info, io.BytesIO(manifest))
        if binary is not None:
            info = tarfile.TarInfo(member)
            info.size = len(binary)
            info.mode = 0o644
            bundle.addfile(info, io.BytesIO(binary))
    return path


@pytest.fixture()
def esbuild_archive_dir(tmp_path: Path, fake_esbuild: Path) -> Path:
    archive_dir = tmp_path / "archives"
    create_esbuild_tarball(
        archive_dir / f"{TEST_CLASSIFIER}-{TEST_VERSION}.tgz",
        fake_esbuild.read_bytes(),
    )
    return archive_dir


@pytest.fixture()
def esbuild_cache(tmp_path: Path, esbuild_archive_dir: Path) -> ExecutableCache:
    return ExecutableCache(
        tmp_path / "cache",
        archive_dirs=[esbuild_archive_dir],
        registry_url=None,
        classifier_name=TEST_CLASSIFIER,
    )


ArchiveFactory = Callable[..., Path]


@pytest.fixture()
def make_archive(tmp_path: Path) -> ArchiveFactory:
    """Build webjar/mvnpm style jars holding one package."""

    def _make(
        file_name: str,
        package_name: Optional[str],
        *,
        layout: ArchiveLayout = ArchiveLayout.MVNPM,
        package_dir: Optional[str] = None,
        files: Optional[Dict[str, str]] = None,
        manifest: Optional[str] = None,
    ) -> Path:
        path = tmp_path / "jars" / file_name
        path.parent.mkdir(parents=True, exist_ok=True)
        base = f"{layout.prefix}/{package_dir or package_name}"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
            if manifest is not None:
                archive.writestr(f"{base}/package.json", manifest)
            elif package_name is not None:
                archive.writestr(f"{base}/package.json", json.dumps({"name": package_name, "version": "1.0.0"}))
            for relative, content in (files or {}).items():
                archive.writestr(f"{base}/{relative}", content)
        return path

    return _make
