"""Bundle webjar and mvnpm front-end dependencies with esbuild."""

__version__ = "0.1.0"
from .bundler import BundleOptions, BundleOrchestrator
from .config import BundlerSettings, default_version
from .entries import FileEntry, ScriptEntry
from .errors import BundlerError, ExecutionError, InstallError, MalformedEventError, ResolutionError
from .install import ArchiveLayout, DependencyInstaller, InstallReport
from .process import CallbackListener, ProcessSupervisor, WatchSession
from .resolve import ExecutableCache
from .schemas import BuildEvent, BuildMessage, BundleResult, EsBuildConfig, ExecuteResult

__all__ = [
    "__version__",
    "ArchiveLayout",
    "BuildEvent",
    "BuildMessage",
    "BundleOptions",
    "BundleOrchestrator",
    "BundleResult",
    "BundlerError",
    "BundlerSettings",
    "CallbackListener",
    "DependencyInstaller",
    "EsBuildConfig",
    "ExecutableCache",
    "ExecuteResult",
    "ExecutionError",
    "FileEntry",
    "InstallError",
    "InstallReport",
    "MalformedEventError",
    "ProcessSupervisor",
    "ResolutionError",
    "ScriptEntry",
    "WatchSession",
    "default_version",
]
