"""Repository coordinator and the pieces it orchestrates."""

from .coordinator import Repository
from .progress import DEFAULT_WINDOW_MS, ProgressThrottler, compute_rate
from .streams import AssetRendition, TrackedAssetWriter, TrackedContentStream
from .subscriptions import SubscriptionRegistry

__all__ = [
    "DEFAULT_WINDOW_MS",
    "AssetRendition",
    "ProgressThrottler",
    "Repository",
    "SubscriptionRegistry",
    "TrackedAssetWriter",
    "TrackedContentStream",
    "compute_rate",
]
