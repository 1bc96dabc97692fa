"""esbuild process supervision."""

from .events import BuildEventDecoder
from .supervisor import BuildEventListener, CallbackListener, ProcessSupervisor, WatchHandle
from .watch import WatchSession

__all__ = [
    "BuildEventDecoder",
    "BuildEventListener",
    "CallbackListener",
    "ProcessSupervisor",
    "WatchHandle",
    "WatchSession",
]
