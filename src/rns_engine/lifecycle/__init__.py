"""Plugin lifecycle batches and the source fetchers they delegate to."""

from .fetch import GitSourceFetcher, SourceFetcher
from .manager import LifecycleFailure, LifecycleManager, LifecycleReport

__all__ = [
    "GitSourceFetcher",
    "SourceFetcher",
    "LifecycleFailure",
    "LifecycleManager",
    "LifecycleReport",
]
