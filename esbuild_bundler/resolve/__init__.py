"""Executable resolution."""

from .executable import ExecutableCache
from .platform import classifier

__all__ = ["ExecutableCache", "classifier"]
