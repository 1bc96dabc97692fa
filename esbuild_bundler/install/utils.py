"""Filesystem helpers used while staging dependency archives."""

from __future__ import annotations

import shutil
import zipfile
from pathlib import Path


def unzip(archive: Path, destination: Path) -> None:
    """Extract ``archive`` into ``destination``, refusing entries that escape it."""

    destination.mkdir(parents=True, exist_ok=True)
    root = destination.resolve()
    with zipfile.ZipFile(archive) as bundle:
        for member in bundle.infolist():
            target = (root / member.filename).resolve()
            if target != root and root not in target.parents:
                raise zipfile.BadZipFile(f"Entry escapes extraction directory: {member.filename}")
        bundle.extractall(root)


def delete_recursive(path: Path) -> None:
    """Remove a file or directory tree; a missing path is not an error."""

    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def copy_file(source: Path, destination: Path) -> Path:
    destination.parent.mkdir(parents=True, exist_ok=True)
    if destination.exists() and destination.resolve() == source.resolve():
        return destination
    shutil.copy2(source, destination)
    return destination
