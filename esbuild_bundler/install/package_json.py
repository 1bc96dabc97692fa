"""Helpers for locating and reading ``package.json`` manifests."""

from __future__ import annotations

import json
from collections import deque
from pathlib import Path
from typing import Optional

PACKAGE_JSON = "package.json"


def find_package_json(root: Path) -> Optional[Path]:
    """Return the shallowest ``package.json`` below ``root``, if any."""

    if not root.is_dir():
        return None
    pending = deque([root])
    while pending:
        directory = pending.popleft()
        candidate = directory / PACKAGE_JSON
        if candidate.is_file():
            return candidate
        pending.extend(sorted(child for child in directory.iterdir() if child.is_dir()))
    return None


def read_package_name(path: Path) -> str:
    """Return the ``name`` declared by a ``package.json`` file."""

    payload = json.loads(path.read_text(encoding="utf-8"))
    name = payload.get("name") if isinstance(payload, dict) else None
    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"No package name declared in {path}")
    return name.strip()
