from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from esbuild_bundler.config import BundlerSettings, default_version


def test_default_version_from_packaged_resource() -> None:
    assert default_version() == "0.17.19"


def test_settings_from_env(tmp_path: Path) -> None:
    environ = {
        "ESBUILD_BUNDLER_VERSION": "0.18.2",
        "ESBUILD_BUNDLER_CACHE_DIR": str(tmp_path / "cache"),
        "ESBUILD_BUNDLER_ARCHIVE_DIR": os.pathsep.join([str(tmp_path / "a"), str(tmp_path / "b")]),
        "ESBUILD_BUNDLER_REGISTRY": "https://npm.example.test/",
        "ESBUILD_BUNDLER_STOP_TIMEOUT": "1.5",
    }

    settings = BundlerSettings.from_env(environ)

    assert settings.esbuild_version == "0.18.2"
    assert settings.cache_dir == tmp_path / "cache"
    assert settings.archive_dirs == [tmp_path / "a", tmp_path / "b"]
    assert settings.registry_url == "https://npm.example.test"
    assert settings.stop_timeout == 1.5


def test_settings_defaults() -> None:
    settings = BundlerSettings.from_env({})

    assert settings.esbuild_version == default_version()
    assert settings.cache_dir.name == "esbuild-bundler"
    assert settings.archive_dirs == []


def test_invalid_stop_timeout_rejected() -> None:
    with pytest.raises(ValidationError):
        BundlerSettings.from_env({"ESBUILD_BUNDLER_STOP_TIMEOUT": "0"})
