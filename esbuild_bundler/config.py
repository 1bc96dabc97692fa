"""Runtime settings for the bundler."""

from __future__ import annotations

import json
import os
from importlib import resources
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

FALLBACK_ESBUILD_VERSION = "0.17.19"
DEFAULT_REGISTRY = "https://registry.npmjs.org"
DEFAULT_STOP_TIMEOUT = 5.0

ENV_VERSION = "ESBUILD_BUNDLER_VERSION"
ENV_CACHE_DIR = "ESBUILD_BUNDLER_CACHE_DIR"
ENV_ARCHIVE_DIR = "ESBUILD_BUNDLER_ARCHIVE_DIR"
ENV_REGISTRY = "ESBUILD_BUNDLER_REGISTRY"
ENV_STOP_TIMEOUT = "ESBUILD_BUNDLER_STOP_TIMEOUT"


def default_version() -> str:
    """Return the esbuild version pinned by the packaged ``versions.json``."""

    try:
        payload = json.loads(
            resources.files("esbuild_bundler").joinpath("resources/versions.json").read_text(encoding="utf-8")
        )
    except (FileNotFoundError, json.JSONDecodeError):
        return FALLBACK_ESBUILD_VERSION
    version = payload.get("esbuild") if isinstance(payload, dict) else None
    return str(version) if version else FALLBACK_ESBUILD_VERSION


def default_cache_dir() -> Path:
    base = os.getenv("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "esbuild-bundler"


class BundlerSettings(BaseModel):
    """Settings shared by every orchestrator call."""

    esbuild_version: str = Field(default_factory=default_version)
    cache_dir: Path = Field(default_factory=default_cache_dir)
    archive_dirs: List[Path] = Field(default_factory=list)
    registry_url: str = DEFAULT_REGISTRY
    stop_timeout: float = Field(default=DEFAULT_STOP_TIMEOUT, gt=0)

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BundlerSettings":
        env = os.environ if environ is None else environ
        payload: dict[str, object] = {}
        if env.get(ENV_VERSION):
            payload["esbuild_version"] = env[ENV_VERSION].strip()
        if env.get(ENV_CACHE_DIR):
            payload["cache_dir"] = Path(env[ENV_CACHE_DIR]).expanduser()
        if env.get(ENV_ARCHIVE_DIR):
            payload["archive_dirs"] = [
                Path(entry).expanduser() for entry in env[ENV_ARCHIVE_DIR].split(os.pathsep) if entry.strip()
            ]
        if env.get(ENV_REGISTRY):
            payload["registry_url"] = env[ENV_REGISTRY].strip().rstrip("/")
        if env.get(ENV_STOP_TIMEOUT):
            payload["stop_timeout"] = float(env[ENV_STOP_TIMEOUT])
        return cls.model_validate(payload)
