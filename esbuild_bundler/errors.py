"""Exception types raised by the bundler."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class BundlerError(RuntimeError):
    """Base class for bundler failures."""


class ResolutionError(BundlerError):
    """Raised when the esbuild executable cannot be resolved."""

    def __init__(self, message: str, *, version: Optional[str] = None) -> None:
        super().__init__(message)
        self.version = version


class InstallError(BundlerError):
    """Raised when a dependency archive or entry script cannot be staged."""

    def __init__(
        self,
        message: str,
        *,
        archive: Optional[Path] = None,
        path: Optional[Path] = None,
    ) -> None:
        super().__init__(message)
        self.archive = archive
        self.path = path


class ExecutionError(BundlerError):
    """Raised when esbuild fails to start or produces no output."""

    def __init__(self, message: str, output: str = "", *, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.output = output
        self.returncode = returncode

    def __str__(self) -> str:
        base = super().__str__()
        if not self.output:
            return base
        return f"{base}\n{self.output.rstrip()}"


class MalformedEventError(BundlerError):
    """A watch-mode output line that looked like an event but could not be decoded.

    Instances are handed to listeners rather than raised.
    """

    def __init__(self, message: str, line: str) -> None:
        super().__init__(message)
        self.line = line
