"""Entity store contract and the in-memory reference backend."""

from .base import AssetWriter, ContentStream, EntityStore
from .memory import InMemoryEntityStore

__all__ = ["AssetWriter", "ContentStream", "EntityStore", "InMemoryEntityStore"]
