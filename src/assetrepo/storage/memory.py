from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime

from assetrepo.context import OperationContext, SearchTerm
from assetrepo.errors import EntityNotFoundError, StoreError
from assetrepo.paths import leaf_name, parent_path, sep
from assetrepo.schemas import (
    AssetInfo,
    AssetInfoPatch,
    DirectoryInfo,
    EntityInfo,
    guess_content_type,
    next_timestamp,
    now_utc,
)

from .base import AssetWriter, ContentStream, EntityStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _DirectoryNode:
    name: str
    created: datetime = field(default_factory=now_utc)
    children: dict[str, _DirectoryNode | _AssetNode] = field(default_factory=dict)


@dataclass(slots=True)
class _AssetNode:
    name: str
    created: datetime = field(default_factory=now_utc)
    modified: datetime | None = None
    content: list[bytes] = field(default_factory=list)
    checked_out: bool = False
    checked_out_by: str = ""

    def __post_init__(self) -> None:
        if self.modified is None:
            self.modified = self.created

    @property
    def size(self) -> int:
        return sum(len(chunk) for chunk in self.content)

    def replace_content(self, chunks: list[bytes]) -> None:
        self.content = chunks
        self.modified = next_timestamp(self.modified)


def _info_from_node(node: _DirectoryNode | _AssetNode) -> EntityInfo:
    if isinstance(node, _DirectoryNode):
        return DirectoryInfo(name=node.name, created=node.created)
    return AssetInfo(
        name=node.name,
        created=node.created,
        modified=node.modified,
        content_type=guess_content_type(node.name),
        size=node.size,
        checked_out=node.checked_out,
        checked_out_by=node.checked_out_by,
    )


async def _iterate_chunks(chunks: list[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


class _MemoryAssetWriter(AssetWriter):
    def __init__(self, store: InMemoryEntityStore, path: str, is_create: bool) -> None:
        self._store = store
        self._path = path
        self._is_create = is_create
        self._chunks: list[bytes] = []
        self._closed = False

    async def write(self, chunk: bytes) -> None:
        if self._closed:
            raise StoreError(f"writer for {self._path} is already closed")
        self._chunks.append(bytes(chunk))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._store._delay()
        self._store._commit_content(self._path, self._chunks, is_create=self._is_create)

    async def abort(self) -> None:
        self._closed = True
        self._chunks = []


class InMemoryEntityStore(EntityStore):
    """Entity store keeping the whole tree in process memory.

    ``delay_ms`` makes every operation yield to the event loop for that long
    before completing, to simulate a slow medium.
    """

    name = "memory"

    def __init__(self, *, delay_ms: int = 0, user_id: str = "") -> None:
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        self.delay_ms = delay_ms
        self.user_id = user_id
        self._root = _DirectoryNode(name=leaf_name(sep()))
        self._lock = threading.RLock()

    async def exists(self, path: str, context: OperationContext) -> bool:
        found = self._find(path) is not None
        await self._delay()
        return found

    async def get_info(self, path: str, context: OperationContext) -> EntityInfo:
        node = self._find(path)
        await self._delay()
        if node is None:
            raise EntityNotFoundError(path)
        return _info_from_node(node)

    async def list(
        self, path: str, dir_info: DirectoryInfo, context: OperationContext
    ) -> list[EntityInfo]:
        node = self._require(path)
        if not isinstance(node, _DirectoryNode):
            raise StoreError(f"path to list is not a directory {path}")
        with self._lock:
            children = [_info_from_node(child) for child in node.children.values()]
        await self._delay()
        return children

    async def create_directory(
        self, path: str, parent_info: DirectoryInfo, context: OperationContext
    ) -> None:
        await self._delay()
        self._attach(path, _DirectoryNode(name=leaf_name(path)))
        logger.debug("memory store created directory path=%s", path)

    async def delete_directory(
        self, path: str, dir_info: DirectoryInfo, context: OperationContext
    ) -> None:
        await self._delay()
        self._detach(path)
        logger.debug("memory store deleted directory path=%s", path)

    async def get_asset_content(
        self, path: str, asset_info: AssetInfo, context: OperationContext
    ) -> ContentStream:
        node = self._require_asset(path)
        await self._delay()
        with self._lock:
            chunks = list(node.content)
        return _iterate_chunks(chunks)

    async def get_asset_thumbnail(
        self, path: str, asset_info: AssetInfo, context: OperationContext
    ) -> tuple[ContentStream, str | None]:
        stream = await self.get_asset_content(path, asset_info, context)
        return stream, guess_content_type(path)

    async def get_asset_preview(
        self, path: str, asset_info: AssetInfo, context: OperationContext
    ) -> tuple[ContentStream, str | None]:
        return await self.get_asset_thumbnail(path, asset_info, context)

    async def open_asset_write(
        self,
        path: str,
        is_create: bool,
        context_info: EntityInfo,
        context: OperationContext,
    ) -> AssetWriter:
        await self._delay()
        return _MemoryAssetWriter(self, path, is_create)

    async def update_asset_info(
        self,
        path: str,
        asset_info: AssetInfo,
        patch: AssetInfoPatch,
        context: OperationContext,
    ) -> None:
        node = self._require_asset(path)
        with self._lock:
            updated = patch.apply(_info_from_node(node))
            node.checked_out = updated.checked_out
            node.checked_out_by = updated.checked_out_by
        await self._delay()

    async def delete_asset(
        self, path: str, asset_info: AssetInfo, context: OperationContext
    ) -> None:
        await self._delay()
        self._detach(path)
        logger.debug("memory store deleted asset path=%s", path)

    async def find_assets(
        self, pattern: SearchTerm, context: OperationContext
    ) -> list[AssetInfo]:
        matches: list[AssetInfo] = []
        with self._lock:
            pending: list[_DirectoryNode] = [self._root]
            while pending:
                directory = pending.pop()
                for child in directory.children.values():
                    if isinstance(child, _DirectoryNode):
                        pending.append(child)
                    elif _name_matches(child.name, pattern):
                        matches.append(_info_from_node(child))
        await self._delay()
        return matches

    async def _delay(self) -> None:
        # Always yield so callers observe completion asynchronously.
        await asyncio.sleep(self.delay_ms / 1000 if self.delay_ms else 0)

    def _find(self, path: str) -> _DirectoryNode | _AssetNode | None:
        with self._lock:
            current: _DirectoryNode | _AssetNode = self._root
            for name in path.split(sep()):
                if not name:
                    continue
                if not isinstance(current, _DirectoryNode):
                    return None
                child = current.children.get(name)
                if child is None:
                    return None
                current = child
            return current

    def _require(self, path: str) -> _DirectoryNode | _AssetNode:
        node = self._find(path)
        if node is None:
            raise EntityNotFoundError(path)
        return node

    def _require_asset(self, path: str) -> _AssetNode:
        node = self._require(path)
        if not isinstance(node, _AssetNode):
            raise StoreError(f"path is not an asset {path}")
        return node

    def _require_parent(self, path: str) -> _DirectoryNode:
        parent = parent_path(path)
        if parent is None:
            raise StoreError(f"path has no parent {path}")
        node = self._require(parent)
        if not isinstance(node, _DirectoryNode):
            raise StoreError(f"parent of {path} is not a directory")
        return node

    def _attach(self, path: str, node: _DirectoryNode | _AssetNode) -> None:
        with self._lock:
            parent = self._require_parent(path)
            if node.name in parent.children:
                raise StoreError(f"path already exists {path}")
            parent.children[node.name] = node

    def _detach(self, path: str) -> None:
        with self._lock:
            parent = self._require_parent(path)
            if parent.children.pop(leaf_name(path), None) is None:
                raise EntityNotFoundError(path)

    def _commit_content(self, path: str, chunks: list[bytes], *, is_create: bool) -> None:
        with self._lock:
            if is_create:
                node = _AssetNode(name=leaf_name(path))
                node.content = chunks
                self._attach(path, node)
                logger.debug("memory store created asset path=%s size=%d", path, node.size)
                return
            existing = self._require_asset(path)
            existing.replace_content(chunks)
            logger.debug("memory store updated asset path=%s size=%d", path, existing.size)


def _name_matches(name: str, pattern: SearchTerm) -> bool:
    if isinstance(pattern, str):
        return pattern in name
    return pattern.search(name) is not None
