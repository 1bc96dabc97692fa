"""Schema exports for esbuild invocations."""

from .build import BuildEvent, BuildLocation, BuildMessage, BundleResult, EsBuildConfig, ExecuteResult

__all__ = [
    "BuildEvent",
    "BuildLocation",
    "BuildMessage",
    "BundleResult",
    "EsBuildConfig",
    "ExecuteResult",
]
