"""Repository coordinator: the public face of an asset repository.

Every operation accepts either a bare path (a search term for
``find_assets``) or an ``OperationContext``. It checks the tree shape with
the store's ``exists``/``get_info`` before delegating, and reports the result
as an ``Outcome``. The outcome is returned and handed to the optional
callback, unless the context names a subscriber that has unsubscribed in the
meantime, in which case nothing is delivered and ``None`` is returned.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable, Mapping
from typing import Any, TypeVar

from pydantic import ValidationError

from assetrepo.context import OperationContext, SearchTerm
from assetrepo.errors import EntityNotFoundError, ErrorKind, Outcome, RepositoryError
from assetrepo.paths import is_root, leaf_name, parent_path
from assetrepo.schemas import (
    AssetInfo,
    AssetInfoPatch,
    DirectoryInfo,
    EntityInfo,
    TransferProgressEvent,
    TransferType,
    guess_content_type,
    now_utc,
)
from assetrepo.storage.base import EntityStore

from .progress import ProgressThrottler
from .streams import AssetRendition, TrackedAssetWriter, TrackedContentStream, TransferTracker
from .subscriptions import SubscriptionRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")
Target = str | OperationContext
Callback = Callable[[Outcome[Any]], None]
ProgressListener = Callable[[TransferProgressEvent], None]
AssetSource = bytes | bytearray | Iterable[bytes] | AsyncIterable[bytes]


class Repository:
    def __init__(
        self,
        store: EntityStore,
        *,
        throttler: ProgressThrottler | None = None,
        subscriptions: SubscriptionRegistry | None = None,
    ) -> None:
        self.store = store
        self.throttler = throttler or ProgressThrottler()
        self.subscriptions = subscriptions or SubscriptionRegistry()
        self._progress_listeners: list[ProgressListener] = []

    # subscriptions

    def subscribe(self, subscriber_id: str) -> None:
        self.subscriptions.subscribe(subscriber_id)

    def unsubscribe(self, subscriber_id: str) -> None:
        self.subscriptions.unsubscribe(subscriber_id)

    def is_subscribed(self, subscriber_id: str) -> bool:
        return self.subscriptions.is_subscribed(subscriber_id)

    # progress listeners

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._progress_listeners.append(listener)

    def remove_progress_listener(self, listener: ProgressListener) -> None:
        if listener in self._progress_listeners:
            self._progress_listeners.remove(listener)

    # queries

    async def exists(self, target: Target, callback: Callback | None = None) -> Outcome[bool] | None:
        context = OperationContext.from_target(target)
        outcome = self._check_path(context)
        if outcome is None:
            outcome = await self._call_store(
                "exists", context.path, self.store.exists(context.path, context)
            )
        return self._deliver(context, outcome, callback)

    async def get_info(
        self, target: Target, callback: Callback | None = None
    ) -> Outcome[EntityInfo] | None:
        context = OperationContext.from_target(target)
        outcome = self._check_path(context) or await self._lookup(context.path, context)
        return self._deliver(context, outcome, callback)

    async def list(
        self, target: Target, callback: Callback | None = None
    ) -> Outcome[list[EntityInfo]] | None:
        context = OperationContext.from_target(target)
        outcome = self._check_path(context) or await self._require_directory(
            context, message="path to list is not a directory"
        )
        if outcome.ok:
            outcome = await self._call_store(
                "list", context.path, self.store.list(context.path, outcome.value, context)
            )
        return self._deliver(context, outcome, callback)

    async def find_assets(
        self,
        target: SearchTerm | OperationContext,
        callback: Callback | None = None,
    ) -> Outcome[list[AssetInfo]] | None:
        context = OperationContext.from_search(target)
        if context.search_term is None:
            outcome: Outcome[list[AssetInfo]] = Outcome.failure(
                ErrorKind.INVALID_ARGUMENT, "a search term is required"
            )
        else:
            logger.debug("find_assets term=%r", context.search_term)
            outcome = await self._call_store(
                "find_assets", None, self.store.find_assets(context.search_term, context)
            )
        return self._deliver(context, outcome, callback)

    # directories

    async def create_directory(
        self, target: Target, callback: Callback | None = None
    ) -> Outcome[DirectoryInfo] | None:
        context = OperationContext.from_target(target)
        path = context.path
        outcome = self._check_path(context) or self._forbid_root(
            path, "cannot create root directory"
        )
        if outcome is None:
            outcome = await self._require_absent(
                context, message="directory to create already exists"
            )
        if outcome.ok:
            outcome = await self._require_parent_directory(context, noun="directory")
        if outcome.ok:
            logger.debug("create_directory path=%s", path)
            created = await self._call_store(
                "create_directory",
                path,
                self.store.create_directory(path, outcome.value, context),
            )
            outcome = await self._lookup(path, context) if created.ok else created
        return self._deliver(context, outcome, callback)

    async def delete_directory(
        self, target: Target, callback: Callback | None = None
    ) -> Outcome[None] | None:
        context = OperationContext.from_target(target)
        path = context.path
        outcome = self._check_path(context) or self._forbid_root(
            path, "cannot delete root directory"
        )
        if outcome is None:
            outcome = await self._require_directory(
                context, message="path to delete is not a directory"
            )
        if outcome.ok:
            logger.debug("delete_directory path=%s", path)
            outcome = await self._call_store(
                "delete_directory",
                path,
                self.store.delete_directory(path, outcome.value, context),
            )
        return self._deliver(context, outcome, callback)

    # asset content

    async def get_asset(
        self, target: Target, callback: Callback | None = None
    ) -> Outcome[TrackedContentStream] | None:
        context = OperationContext.from_target(target)
        path = context.path
        outcome = self._check_path(context) or await self._require_asset(
            context, message="path to retrieve is not an asset"
        )
        if outcome.ok:
            info = outcome.value
            source = await self._call_store(
                "get_asset", path, self.store.get_asset_content(path, info, context)
            )
            if source.ok:
                tracker = self._tracker(context, TransferType.READ, info)
                outcome = Outcome.success(TrackedContentStream(source.value, tracker))
            else:
                outcome = source
        return self._deliver(context, outcome, callback)

    async def get_asset_thumbnail(
        self, target: Target, callback: Callback | None = None
    ) -> Outcome[AssetRendition] | None:
        return await self._get_rendition(target, callback, "get_asset_thumbnail")

    async def get_asset_preview(
        self, target: Target, callback: Callback | None = None
    ) -> Outcome[AssetRendition] | None:
        return await self._get_rendition(target, callback, "get_asset_preview")

    async def create_asset(
        self,
        target: Target,
        source: AssetSource,
        callback: Callback | None = None,
    ) -> Outcome[AssetInfo] | None:
        """Create an asset from ``source`` and return its fresh info once committed."""
        return await self._write_from_source(target, source, callback, is_create=True)

    async def update_asset(
        self,
        target: Target,
        source: AssetSource,
        callback: Callback | None = None,
    ) -> Outcome[AssetInfo] | None:
        """Replace an existing asset's content with ``source``."""
        return await self._write_from_source(target, source, callback, is_create=False)

    async def create_asset_writer(
        self,
        target: Target,
        callback: Callback | None = None,
        finished: Callback | None = None,
    ) -> Outcome[TrackedAssetWriter] | None:
        """Open a writer for a new asset.

        ``callback`` receives the writer; ``finished`` receives the asset's
        info once the writer has been closed, or the error that ended the
        transfer.
        """
        context = OperationContext.from_target(target)
        outcome = await self._open_writer(context, is_create=True, finished=finished)
        return self._deliver(context, outcome, callback)

    async def update_asset_writer(
        self,
        target: Target,
        callback: Callback | None = None,
        finished: Callback | None = None,
    ) -> Outcome[TrackedAssetWriter] | None:
        context = OperationContext.from_target(target)
        outcome = await self._open_writer(context, is_create=False, finished=finished)
        return self._deliver(context, outcome, callback)

    # asset metadata

    async def update_asset_info(
        self,
        target: Target,
        patch: AssetInfoPatch | Mapping[str, Any],
        callback: Callback | None = None,
    ) -> Outcome[AssetInfo] | None:
        context = OperationContext.from_target(target)
        path = context.path
        outcome = self._check_path(context) or await self._require_asset(
            context, message="path to update is not an asset"
        )
        if outcome.ok:
            validated = _validate_patch(patch, path)
            if validated.ok:
                logger.debug("update_asset_info path=%s patch=%s", path, validated.value)
                updated = await self._call_store(
                    "update_asset_info",
                    path,
                    self.store.update_asset_info(path, outcome.value, validated.value, context),
                )
                outcome = await self._lookup(path, context) if updated.ok else updated
            else:
                outcome = validated
        return self._deliver(context, outcome, callback)

    async def delete_asset(
        self, target: Target, callback: Callback | None = None
    ) -> Outcome[None] | None:
        context = OperationContext.from_target(target)
        path = context.path
        outcome = self._check_path(context) or await self._require_asset(
            context, message="path to delete is not an asset"
        )
        if outcome.ok:
            logger.debug("delete_asset path=%s", path)
            outcome = await self._call_store(
                "delete_asset", path, self.store.delete_asset(path, outcome.value, context)
            )
        return self._deliver(context, outcome, callback)

    # internals

    async def _get_rendition(
        self, target: Target, callback: Callback | None, operation: str
    ) -> Outcome[AssetRendition] | None:
        context = OperationContext.from_target(target)
        path = context.path
        outcome = self._check_path(context) or await self._require_asset(
            context, message="path to retrieve is not an asset"
        )
        if outcome.ok:
            fetch = getattr(self.store, operation)
            rendition = await self._call_store(operation, path, fetch(path, outcome.value, context))
            if rendition.ok:
                stream, content_type = rendition.value
                outcome = Outcome.success(AssetRendition(stream=stream, content_type=content_type))
            else:
                outcome = rendition
        return self._deliver(context, outcome, callback)

    async def _write_from_source(
        self,
        target: Target,
        source: AssetSource,
        callback: Callback | None,
        *,
        is_create: bool,
    ) -> Outcome[AssetInfo] | None:
        context = OperationContext.from_target(target)
        opened = await self._open_writer(context, is_create=is_create, finished=callback)
        if not opened.ok:
            return self._deliver(context, opened, callback)

        writer = opened.value
        try:
            async for chunk in _iterate_source(source):
                if not await writer.write(chunk):
                    break
        except Exception as exc:
            logger.exception("source stream failed path=%s", context.path)
            return await writer.fail(
                RepositoryError(
                    kind=ErrorKind.BACKEND_ERROR,
                    message=f"source stream failed: {exc}",
                    path=context.path,
                )
            )
        return await writer.close()

    async def _open_writer(
        self,
        context: OperationContext,
        *,
        is_create: bool,
        finished: Callback | None,
    ) -> Outcome[TrackedAssetWriter]:
        path = context.path
        if is_create:
            checked = self._check_path(context) or await self._require_absent(
                context, message="asset to create already exists"
            )
            if checked.ok:
                checked = await self._require_parent_directory(context, noun="asset")
        else:
            checked = self._check_path(context) or await self._require_asset(
                context, message="path to update is not an asset"
            )
        if not checked.ok:
            return Outcome(error=checked.error)

        context_info = checked.value
        opened = await self._call_store(
            "open_asset_write",
            path,
            self.store.open_asset_write(path, is_create, context_info, context),
        )
        if not opened.ok:
            return Outcome(error=opened.error)

        transfer_type = TransferType.CREATE if is_create else TransferType.UPDATE
        if is_create:
            now = now_utc()
            progress_info = AssetInfo(
                name=leaf_name(path),
                created=now,
                modified=now,
                content_type=guess_content_type(leaf_name(path)),
            )
        else:
            progress_info = context_info
        tracker = self._tracker(context, transfer_type, progress_info)
        logger.debug("opened asset writer path=%s type=%s", path, transfer_type)

        async def finalize(error: RepositoryError | None) -> Outcome[AssetInfo] | None:
            if error is not None:
                return self._deliver(context, Outcome(error=error), finished)
            refreshed = await self._lookup(path, context)
            if refreshed.ok and isinstance(refreshed.value, AssetInfo):
                tracker.end(refreshed.value)
            else:
                tracker.abandon()
            return self._deliver(context, refreshed, finished)

        return Outcome.success(TrackedAssetWriter(opened.value, tracker, finalize))

    def _tracker(
        self, context: OperationContext, transfer_type: TransferType, info: AssetInfo
    ) -> TransferTracker:
        return TransferTracker(
            path=context.path,
            transfer_type=transfer_type,
            info=info,
            throttler=self.throttler,
            sink=lambda event: self._publish_progress(context, event),
        )

    def _publish_progress(self, context: OperationContext, event: TransferProgressEvent) -> None:
        def notify() -> None:
            for listener in list(self._progress_listeners):
                listener(event)

        self.subscriptions.gate(context.subscriber_id, notify)

    def _deliver(
        self,
        context: OperationContext,
        outcome: Outcome[T],
        callback: Callback | None,
    ) -> Outcome[T] | None:
        if outcome.error is not None:
            logger.debug(
                "operation failed path=%s correlation_id=%s error=%s",
                outcome.error.path or context.path,
                context.correlation_id,
                outcome.error,
            )

        def deliver() -> None:
            if callback is not None:
                callback(outcome)

        if self.subscriptions.gate(context.subscriber_id, deliver):
            return outcome
        return None

    async def _call_store(self, operation: str, path: str | None, call: Awaitable[T]) -> Outcome[T]:
        try:
            return Outcome.success(await call)
        except EntityNotFoundError as exc:
            return Outcome.failure(ErrorKind.PATH_NOT_FOUND, str(exc), path=exc.path)
        except Exception as exc:
            logger.exception("store operation failed operation=%s path=%s", operation, path)
            return Outcome.failure(
                ErrorKind.BACKEND_ERROR, str(exc) or type(exc).__name__, path=path
            )

    async def _lookup(self, path: str, context: OperationContext) -> Outcome[EntityInfo]:
        found = await self._call_store("exists", path, self.store.exists(path, context))
        if not found.ok:
            return Outcome(error=found.error)
        if not found.value:
            return Outcome.failure(
                ErrorKind.PATH_NOT_FOUND, f"path does not exist {path}", path=path
            )
        return await self._call_store("get_info", path, self.store.get_info(path, context))

    async def _require_directory(
        self, context: OperationContext, *, message: str
    ) -> Outcome[DirectoryInfo]:
        found = await self._lookup(context.path, context)
        if found.ok and not isinstance(found.value, DirectoryInfo):
            return Outcome.failure(
                ErrorKind.NOT_A_DIRECTORY, f"{message} {context.path}", path=context.path
            )
        return found  # type: ignore[return-value]

    async def _require_asset(
        self, context: OperationContext, *, message: str
    ) -> Outcome[AssetInfo]:
        found = await self._lookup(context.path, context)
        if found.ok and not isinstance(found.value, AssetInfo):
            return Outcome.failure(
                ErrorKind.NOT_AN_ASSET, f"{message} {context.path}", path=context.path
            )
        return found  # type: ignore[return-value]

    async def _require_absent(self, context: OperationContext, *, message: str) -> Outcome[None]:
        found = await self._call_store(
            "exists", context.path, self.store.exists(context.path, context)
        )
        if not found.ok:
            return Outcome(error=found.error)
        if found.value:
            return Outcome.failure(
                ErrorKind.PATH_ALREADY_EXISTS, f"{message} {context.path}", path=context.path
            )
        return Outcome.success()

    async def _require_parent_directory(
        self, context: OperationContext, *, noun: str
    ) -> Outcome[DirectoryInfo]:
        parent = parent_path(context.path)
        if parent is None:
            return Outcome.failure(
                ErrorKind.INVALID_ARGUMENT,
                f"cannot create {noun} without a parent {context.path}",
                path=context.path,
            )
        found = await self._lookup(parent, context)
        if found.ok and not isinstance(found.value, DirectoryInfo):
            return Outcome.failure(
                ErrorKind.PARENT_NOT_A_DIRECTORY,
                f"cannot create {noun} {context.path} beneath entity type {found.value.type}",
                path=context.path,
            )
        return found  # type: ignore[return-value]

    @staticmethod
    def _check_path(context: OperationContext) -> Outcome[Any] | None:
        if not context.path:
            return Outcome.failure(ErrorKind.INVALID_ARGUMENT, "a path is required")
        return None

    @staticmethod
    def _forbid_root(path: str, message: str) -> Outcome[Any] | None:
        if is_root(path):
            return Outcome.failure(ErrorKind.ROOT_OPERATION_FORBIDDEN, message, path=path)
        return None


def _validate_patch(patch: AssetInfoPatch | Mapping[str, Any], path: str) -> Outcome[AssetInfoPatch]:
    if isinstance(patch, AssetInfoPatch):
        return Outcome.success(patch)
    try:
        return Outcome.success(AssetInfoPatch.model_validate(dict(patch)))
    except ValidationError as exc:
        return Outcome.failure(
            ErrorKind.INVALID_ARGUMENT, f"invalid asset info patch: {exc}", path=path
        )


async def _iterate_source(source: AssetSource) -> AsyncIterator[bytes]:
    if isinstance(source, (bytes, bytearray)):
        if source:
            yield bytes(source)
        return
    if isinstance(source, AsyncIterable):
        async for chunk in source:
            yield chunk
        return
    for chunk in source:
        yield chunk
