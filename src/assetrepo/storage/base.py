"""Contract implemented once per storage medium.

Every method except ``exists`` and ``get_info`` may assume the coordinator has
already verified that the path exists (or does not) and has the right type.
Failures are raised; the coordinator reports them as backend errors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from assetrepo.context import OperationContext, SearchTerm
from assetrepo.schemas import AssetInfo, AssetInfoPatch, DirectoryInfo, EntityInfo

ContentStream = AsyncIterator[bytes]


class AssetWriter(ABC):
    """Writable target for an asset's content."""

    @abstractmethod
    async def write(self, chunk: bytes) -> None:
        """Buffer or persist one chunk of content."""

    @abstractmethod
    async def close(self) -> None:
        """Flush and commit everything written so far. Returns once committed."""

    async def abort(self) -> None:
        """Discard uncommitted content. Backends that stream directly may ignore it."""


class EntityStore(ABC):
    name: str = "entity-store"

    @abstractmethod
    async def exists(self, path: str, context: OperationContext) -> bool:
        """Return True if a directory or asset lives at ``path``."""

    @abstractmethod
    async def get_info(self, path: str, context: OperationContext) -> EntityInfo:
        """Return the info view of ``path``; raise ``EntityNotFoundError`` if missing."""

    @abstractmethod
    async def list(
        self, path: str, dir_info: DirectoryInfo, context: OperationContext
    ) -> list[EntityInfo]:
        """Return the info of every child of a directory."""

    @abstractmethod
    async def create_directory(
        self, path: str, parent_info: DirectoryInfo, context: OperationContext
    ) -> None:
        pass

    @abstractmethod
    async def delete_directory(
        self, path: str, dir_info: DirectoryInfo, context: OperationContext
    ) -> None:
        pass

    @abstractmethod
    async def get_asset_content(
        self, path: str, asset_info: AssetInfo, context: OperationContext
    ) -> ContentStream:
        pass

    @abstractmethod
    async def get_asset_thumbnail(
        self, path: str, asset_info: AssetInfo, context: OperationContext
    ) -> tuple[ContentStream, str | None]:
        """Return a thumbnail stream and its content type."""

    @abstractmethod
    async def get_asset_preview(
        self, path: str, asset_info: AssetInfo, context: OperationContext
    ) -> tuple[ContentStream, str | None]:
        """Return a preview stream and its content type."""

    @abstractmethod
    async def open_asset_write(
        self,
        path: str,
        is_create: bool,
        context_info: EntityInfo,
        context: OperationContext,
    ) -> AssetWriter:
        """Return a writer for an asset's content.

        ``context_info`` is the parent directory's info when creating, and the
        asset's own info when updating. Content becomes visible when the
        writer's ``close`` returns.
        """

    @abstractmethod
    async def update_asset_info(
        self,
        path: str,
        asset_info: AssetInfo,
        patch: AssetInfoPatch,
        context: OperationContext,
    ) -> None:
        pass

    @abstractmethod
    async def delete_asset(
        self, path: str, asset_info: AssetInfo, context: OperationContext
    ) -> None:
        pass

    @abstractmethod
    async def find_assets(
        self, pattern: SearchTerm, context: OperationContext
    ) -> list[AssetInfo]:
        """Scan the whole tree for assets whose name matches ``pattern``.

        A ``str`` is a literal substring match, a compiled pattern is searched
        with ``re.search``.
        """
