"""Map the host platform to esbuild's npm package classifier."""

from __future__ import annotations

import platform as _platform
from typing import Optional

from ..errors import ResolutionError


def classifier(system: Optional[str] = None, machine: Optional[str] = None) -> str:
    """Return the ``@esbuild/<classifier>`` name for the given host."""

    system_name = (system or _platform.system()).lower()
    machine_name = (machine or _platform.machine()).replace("_", "-").lower()

    os_part = _map_system(system_name)
    arch_part = _map_machine(machine_name)
    if os_part is None or arch_part is None:
        raise ResolutionError(f"Unsupported platform for esbuild: {system_name}/{machine_name}")
    return f"{os_part}-{arch_part}"


def binary_name(classifier_name: str) -> str:
    return "esbuild.exe" if classifier_name.startswith("win32-") else "esbuild"


def binary_member(classifier_name: str) -> str:
    """Path of the executable inside the npm package tarball."""

    if classifier_name.startswith("win32-"):
        return "package/esbuild.exe"
    return "package/bin/esbuild"


def _map_system(system_name: str) -> Optional[str]:
    mapping = {
        "linux": "linux",
        "darwin": "darwin",
        "macos": "darwin",
        "windows": "win32",
        "freebsd": "freebsd",
        "openbsd": "openbsd",
        "netbsd": "netbsd",
        "sunos": "sunos",
    }
    if system_name.startswith(("cygwin", "msys", "mingw")):
        return "win32"
    return mapping.get(system_name)


def _map_machine(machine_name: str) -> Optional[str]:
    mapping = {
        "x86-64": "x64",
        "amd64": "x64",
        "x64": "x64",
        "aarch64": "arm64",
        "arm64": "arm64",
        "armv7l": "arm",
        "armv6l": "arm",
        "i386": "ia32",
        "i686": "ia32",
        "x86": "ia32",
        "ppc64le": "ppc64",
        "s390x": "s390x",
        "riscv64": "riscv64",
        "loongarch64": "loong64",
        "mips64": "mips64el",
    }
    return mapping.get(machine_name)
