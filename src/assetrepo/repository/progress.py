from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from assetrepo.schemas import TransferProgress, TransferType

DEFAULT_WINDOW_MS = 1000

_Key = tuple[str, TransferType]


def compute_rate(read: int, elapsed_ms: float) -> int:
    """Bytes per millisecond, at least 1 once any time has elapsed."""
    if elapsed_ms <= 0:
        return 0
    return max(1, round(read / elapsed_ms))


@dataclass(slots=True)
class _TransferState:
    started_at: float
    last_emitted_at: float | None = None
    last_read: int = 0
    last_rate: int = 0


class ProgressThrottler:
    """Decides which transfer progress snapshots are worth reporting.

    The first and the last snapshot of a transfer are always reported. In
    between, a snapshot is reported (and the rate recalculated) only once
    ``window_ms`` has passed since the previous report for the same path and
    transfer type.
    """

    def __init__(
        self,
        *,
        window_ms: int = DEFAULT_WINDOW_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_ms < 0:
            raise ValueError("window_ms must be >= 0")
        self.window_ms = window_ms
        self._clock = clock
        self._states: dict[_Key, _TransferState] = {}
        self._lock = threading.Lock()

    def start(self, path: str, transfer_type: TransferType) -> TransferProgress:
        now = self._now_ms()
        with self._lock:
            state = _TransferState(started_at=now)
            self._states[(path, transfer_type)] = state
            return self._emit(state, transfer_type, read=0, rate=0, now=now)

    def advance(
        self,
        path: str,
        transfer_type: TransferType,
        read: int,
        *,
        force: bool = False,
    ) -> TransferProgress | None:
        now = self._now_ms()
        with self._lock:
            state = self._state_for(path, transfer_type, now)
            window_elapsed = self._window_elapsed(state, now)
            if not (force or state.last_emitted_at is None or window_elapsed):
                return None
            rate = compute_rate(read, now - state.started_at) if window_elapsed else 0
            return self._emit(state, transfer_type, read=read, rate=rate, now=now)

    def finish(self, path: str, transfer_type: TransferType, read: int) -> TransferProgress:
        """Report the final snapshot regardless of the window and forget the transfer."""
        now = self._now_ms()
        with self._lock:
            state = self._state_for(path, transfer_type, now)
            rate = compute_rate(read, now - state.started_at)
            progress = self._emit(state, transfer_type, read=read, rate=rate, now=now)
            self._states.pop((path, transfer_type), None)
            return progress

    def reset(self, path: str, transfer_type: TransferType) -> None:
        with self._lock:
            self._states.pop((path, transfer_type), None)

    def last_emitted(self, path: str, transfer_type: TransferType) -> TransferProgress | None:
        with self._lock:
            state = self._states.get((path, transfer_type))
            if state is None or state.last_emitted_at is None:
                return None
            return TransferProgress(type=transfer_type, read=state.last_read, rate=state.last_rate)

    def is_tracking(self, path: str, transfer_type: TransferType) -> bool:
        with self._lock:
            return (path, transfer_type) in self._states

    def _state_for(self, path: str, transfer_type: TransferType, now: float) -> _TransferState:
        key = (path, transfer_type)
        state = self._states.get(key)
        if state is None:
            state = _TransferState(started_at=now)
            self._states[key] = state
        return state

    def _window_elapsed(self, state: _TransferState, now: float) -> bool:
        if state.last_emitted_at is None:
            return False
        return now - state.last_emitted_at > self.window_ms

    @staticmethod
    def _emit(
        state: _TransferState,
        transfer_type: TransferType,
        *,
        read: int,
        rate: int,
        now: float,
    ) -> TransferProgress:
        state.last_emitted_at = now
        state.last_read = read
        state.last_rate = rate
        return TransferProgress(type=transfer_type, read=read, rate=rate)

    def _now_ms(self) -> float:
        return self._clock() * 1000
