"""Dependency staging."""

from .dependencies import (
    LAYOUT_PREFIXES,
    NODE_MODULES,
    ArchiveLayout,
    DependencyInstaller,
    InstalledPackage,
    InstallReport,
    SkippedArchive,
    clear,
    install,
)

__all__ = [
    "LAYOUT_PREFIXES",
    "NODE_MODULES",
    "ArchiveLayout",
    "DependencyInstaller",
    "InstalledPackage",
    "InstallReport",
    "SkippedArchive",
    "clear",
    "install",
]
