from __future__ import annotations

import pytest

from assetrepo.repository import ProgressThrottler, compute_rate
from assetrepo.schemas import TransferType


def _throttler(clock: dict[str, float], window_ms: int = 1000) -> ProgressThrottler:
    return ProgressThrottler(window_ms=window_ms, clock=lambda: clock["now"])


def test_compute_rate() -> None:
    assert compute_rate(100, 0) == 0
    assert compute_rate(13, 1300) == 1
    assert compute_rate(5000, 1000) == 5


def test_negative_window_rejected() -> None:
    with pytest.raises(ValueError):
        ProgressThrottler(window_ms=-1)


def test_start_always_emits_zero() -> None:
    clock = {"now": 10.0}
    throttler = _throttler(clock)

    progress = throttler.start("/a.txt", TransferType.READ)

    assert progress.read == 0
    assert progress.rate == 0
    assert progress.type == TransferType.READ
    assert throttler.is_tracking("/a.txt", TransferType.READ)


def test_advance_is_throttled_inside_window() -> None:
    clock = {"now": 10.0}
    throttler = _throttler(clock)
    throttler.start("/a.txt", TransferType.CREATE)

    clock["now"] = 10.5
    assert throttler.advance("/a.txt", TransferType.CREATE, 100) is None

    clock["now"] = 11.2
    progress = throttler.advance("/a.txt", TransferType.CREATE, 1200)
    assert progress is not None
    assert progress.read == 1200
    assert progress.rate == 1

    last = throttler.last_emitted("/a.txt", TransferType.CREATE)
    assert last == progress


def test_advance_without_start_emits_first_snapshot() -> None:
    clock = {"now": 0.0}
    throttler = _throttler(clock)

    progress = throttler.advance("/a.txt", TransferType.UPDATE, 7)

    assert progress is not None
    assert progress.read == 7
    assert progress.rate == 0


def test_force_bypasses_window() -> None:
    clock = {"now": 0.0}
    throttler = _throttler(clock)
    throttler.start("/a.txt", TransferType.READ)

    progress = throttler.advance("/a.txt", TransferType.READ, 3, force=True)

    assert progress is not None
    assert progress.read == 3


def test_instant_transfer_finishes_with_zero_rate() -> None:
    clock = {"now": 0.0}
    throttler = _throttler(clock)
    throttler.start("/a.txt", TransferType.CREATE)
    throttler.advance("/a.txt", TransferType.CREATE, 13)

    final = throttler.finish("/a.txt", TransferType.CREATE, 13)

    assert final.read == 13
    assert final.rate == 0
    assert not throttler.is_tracking("/a.txt", TransferType.CREATE)


def test_finish_inside_window_reports_rate_since_start() -> None:
    clock = {"now": 0.0}
    throttler = _throttler(clock)
    throttler.start("/a.txt", TransferType.CREATE)
    assert throttler.advance("/a.txt", TransferType.CREATE, 5000) is None

    clock["now"] = 0.9
    final = throttler.finish("/a.txt", TransferType.CREATE, 5000)

    assert final.read == 5000
    assert final.rate == 6


def test_slow_transfer_finishes_with_positive_rate() -> None:
    clock = {"now": 0.0}
    throttler = _throttler(clock)
    throttler.start("/a.txt", TransferType.CREATE)
    throttler.advance("/a.txt", TransferType.CREATE, 13)

    clock["now"] = 1.3
    final = throttler.finish("/a.txt", TransferType.CREATE, 13)

    assert final.rate == 1


def test_finish_emits_even_when_total_was_already_reported() -> None:
    clock = {"now": 0.0}
    throttler = _throttler(clock)
    throttler.start("/a.txt", TransferType.READ)

    clock["now"] = 2.0
    intermediate = throttler.advance("/a.txt", TransferType.READ, 50)
    assert intermediate is not None

    clock["now"] = 2.5
    final = throttler.finish("/a.txt", TransferType.READ, 50)

    assert final.read == 50
    assert final.rate == 1
    assert not throttler.is_tracking("/a.txt", TransferType.READ)



def test_transfers_are_tracked_per_path_and_type() -> None:
    clock = {"now": 0.0}
    throttler = _throttler(clock)
    throttler.start("/a.txt", TransferType.READ)
    throttler.start("/a.txt", TransferType.UPDATE)
    throttler.start("/b.txt", TransferType.READ)

    throttler.reset("/a.txt", TransferType.READ)

    assert not throttler.is_tracking("/a.txt", TransferType.READ)
    assert throttler.is_tracking("/a.txt", TransferType.UPDATE)
    assert throttler.is_tracking("/b.txt", TransferType.READ)
    assert throttler.last_emitted("/a.txt", TransferType.READ) is None
