from .scan import run_scan
from .watch import WatchSession

__all__ = [
    "run_scan",
    "WatchSession",
]
