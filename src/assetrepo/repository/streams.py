from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from assetrepo.errors import ErrorKind, Outcome, RepositoryError, RepositoryOperationError
from assetrepo.schemas import AssetInfo, TransferProgress, TransferProgressEvent, TransferType
from assetrepo.storage.base import AssetWriter, ContentStream

from .progress import ProgressThrottler

logger = logging.getLogger(__name__)

ProgressSink = Callable[[TransferProgressEvent], None]
Finalizer = Callable[[RepositoryError | None], Awaitable[Outcome[AssetInfo] | None]]


@dataclass(slots=True, frozen=True)
class AssetRendition:
    """Thumbnail or preview content together with its content type."""

    stream: ContentStream
    content_type: str | None


class TransferTracker:
    """Counts the bytes of one transfer and publishes throttled progress."""

    def __init__(
        self,
        *,
        path: str,
        transfer_type: TransferType,
        info: AssetInfo,
        throttler: ProgressThrottler,
        sink: ProgressSink,
    ) -> None:
        self.path = path
        self.transfer_type = transfer_type
        self.info = info
        self.read = 0
        self._throttler = throttler
        self._sink = sink
        self._started = False
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def begin(self) -> None:
        if self._started:
            return
        self._started = True
        self._publish(self._throttler.start(self.path, self.transfer_type))

    def add(self, count: int) -> None:
        self.begin()
        self.read += count
        self._publish(self._throttler.advance(self.path, self.transfer_type, self.read))

    def end(self, info: AssetInfo | None = None) -> None:
        if self._finished:
            return
        self.begin()
        self._finished = True
        if info is not None:
            self.info = info
        self._publish(self._throttler.finish(self.path, self.transfer_type, self.read))

    def abandon(self) -> None:
        self._finished = True
        self._throttler.reset(self.path, self.transfer_type)

    def _publish(self, progress: TransferProgress | None) -> None:
        if progress is None:
            return
        self._sink(TransferProgressEvent(path=self.path, info=self.info, progress=progress))


class TrackedContentStream:
    """Asset content stream that reports read progress as it is consumed."""

    def __init__(self, source: ContentStream, tracker: TransferTracker) -> None:
        self._source = source
        self._tracker = tracker

    @property
    def bytes_read(self) -> int:
        return self._tracker.read

    def __aiter__(self) -> TrackedContentStream:
        return self

    async def __anext__(self) -> bytes:
        if self._tracker.finished:
            raise StopAsyncIteration
        self._tracker.begin()
        try:
            chunk = await self._source.__anext__()
        except StopAsyncIteration:
            self._tracker.end()
            raise
        except Exception as exc:
            logger.exception("content stream failed path=%s", self._tracker.path)
            self._tracker.abandon()
            raise RepositoryOperationError(
                RepositoryError(
                    kind=ErrorKind.BACKEND_ERROR,
                    message=str(exc) or type(exc).__name__,
                    path=self._tracker.path,
                )
            ) from exc
        self._tracker.add(len(chunk))
        return chunk

    async def aclose(self) -> None:
        """Stop reading early. The transfer is dropped without an end event."""
        if not self._tracker.finished:
            self._tracker.abandon()
        close = getattr(self._source, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> TrackedContentStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def read_all(self) -> Outcome[bytes]:
        chunks: list[bytes] = []
        try:
            async for chunk in self:
                chunks.append(chunk)
        except RepositoryOperationError as exc:
            return Outcome(error=exc.error)
        return Outcome.success(b"".join(chunks))


class TrackedAssetWriter:
    """Writer handed to callers of the streamed create/update operations.

    Backend write failures are not raised: they complete the operation with
    a backend error, delivered to the same completion callback as a
    successful commit.
    """

    def __init__(self, writer: AssetWriter, tracker: TransferTracker, finalize: Finalizer) -> None:
        self._writer = writer
        self._tracker = tracker
        self._finalize = finalize
        self._completed = False
        self._result: Outcome[AssetInfo] | None = None

    @property
    def path(self) -> str:
        return self._tracker.path

    @property
    def bytes_written(self) -> int:
        return self._tracker.read

    @property
    def completed(self) -> bool:
        return self._completed

    async def write(self, chunk: bytes) -> bool:
        """Write one chunk. Returns False once the transfer has completed or failed."""
        if self._completed:
            return False
        self._tracker.begin()
        try:
            await self._writer.write(chunk)
        except Exception as exc:
            logger.exception("asset write failed path=%s", self.path)
            await self._complete(self._backend_error(exc))
            return False
        self._tracker.add(len(chunk))
        return True

    async def close(self) -> Outcome[AssetInfo] | None:
        """Commit the content. Returns the delivered outcome, or None if suppressed."""
        if self._completed:
            return self._result
        self._tracker.begin()
        try:
            await self._writer.close()
        except Exception as exc:
            logger.exception("asset commit failed path=%s", self.path)
            return await self._complete(self._backend_error(exc))
        return await self._complete(None)

    async def fail(self, error: RepositoryError) -> Outcome[AssetInfo] | None:
        """Abort the transfer because its source failed."""
        if self._completed:
            return self._result
        await self._writer.abort()
        return await self._complete(error)

    async def _complete(self, error: RepositoryError | None) -> Outcome[AssetInfo] | None:
        self._completed = True
        if error is not None:
            self._tracker.abandon()
        self._result = await self._finalize(error)
        return self._result

    def _backend_error(self, exc: Exception) -> RepositoryError:
        return RepositoryError(
            kind=ErrorKind.BACKEND_ERROR,
            message=str(exc) or type(exc).__name__,
            path=self.path,
        )
