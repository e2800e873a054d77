"""Hierarchical asset repository core."""

__version__ = "0.1.0"

from .config import RepositoryConfig, build_repository, load_config
from .context import OperationContext
from .errors import ErrorKind, Outcome, RepositoryError, StoreError
from .repository import Repository
from .schemas import (
    AssetInfo,
    AssetInfoPatch,
    DirectoryInfo,
    EntityType,
    TransferProgress,
    TransferProgressEvent,
    TransferType,
)
from .storage import EntityStore, InMemoryEntityStore

__all__ = [
    "__version__",
    "AssetInfo",
    "AssetInfoPatch",
    "DirectoryInfo",
    "EntityStore",
    "EntityType",
    "ErrorKind",
    "InMemoryEntityStore",
    "OperationContext",
    "Outcome",
    "Repository",
    "RepositoryConfig",
    "RepositoryError",
    "StoreError",
    "TransferProgress",
    "TransferProgressEvent",
    "TransferType",
    "build_repository",
    "load_config",
]
