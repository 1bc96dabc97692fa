"""Entry points materialised into the bundle root before esbuild runs."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Set

from .errors import InstallError
from .install.utils import copy_file


class Entry(ABC):
    @abstractmethod
    def process(self, work_dir: Path) -> Path:
        """Write the entry into ``work_dir`` and return the esbuild entry point."""


def _require_script(script: Path) -> Path:
    source = Path(script)
    if not source.is_file():
        raise InstallError(f"Entry script not found: {source}", path=source)
    return source


@dataclass(slots=True)
class FileEntry(Entry):
    """A single script copied into the root and bundled as-is."""

    path: Path

    def process(self, work_dir: Path) -> Path:
        source = _require_script(self.path)
        return copy_file(source, work_dir / source.name)


@dataclass(slots=True)
class ScriptEntry(Entry):
    """Several scripts combined behind one generated ``<name>.js`` module.

    Scripts are copied next to the generated module. Two scripts with the same
    file name get distinct copies (``index.js``, ``index-1.js``, ...).
    """

    name: str
    scripts: List[Path] = field(default_factory=list)

    def process(self, work_dir: Path) -> Path:
        lines: List[str] = []
        used: Set[str] = {f"{self.name}.js"}
        for script in self.scripts:
            source = _require_script(script)
            file_name = _unique_name(source, used)
            copy_file(source, work_dir / file_name)
            lines.append(f'import "./{file_name}";')

        entry = work_dir / f"{self.name}.js"
        entry.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return entry


def _unique_name(source: Path, used: Set[str]) -> str:
    candidate = source.name
    counter = 1
    while candidate in used:
        candidate = f"{source.stem}-{counter}{source.suffix}"
        counter += 1
    used.add(candidate)
    return candidate
