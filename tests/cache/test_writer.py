import asyncio
import threading

import pytest

from wa_recall.memory.cache import WriteCoordinator


class GatedStore:
    """Blocks the first save until the test opens the gate."""

    def __init__(self) -> None:
        self.gate = threading.Event()
        self.saves: list[list] = []

    def save(self, entries) -> bool:
        self.saves.append(list(entries))
        if len(self.saves) == 1:
            self.gate.wait(timeout=5)
        return True


async def _until(predicate) -> None:
    for _ in range(500):
        if predicate():
            return
        await asyncio.sleep(0.001)
    raise AssertionError("condition never became true")


@pytest.mark.asyncio
async def test_single_request_writes_once(store):
    state = [("A", "entry")]
    writer = WriteCoordinator(store, lambda: list(state))

    await writer.request()

    assert store.saves == [[("A", "entry")]]
    assert not writer.saving


@pytest.mark.asyncio
async def test_overlapping_requests_coalesce_into_one_trailing_write():
    store = GatedStore()
    state: list = []
    writer = WriteCoordinator(store, lambda: list(state))

    first = asyncio.create_task(writer.request())
    await _until(lambda: writer.saving and store.saves)

    waiters = []
    for i in range(5):
        state.append((str(i), "entry"))
        waiters.append(asyncio.create_task(writer.request()))
    await _until(lambda: writer.pending == 5)

    store.gate.set()
    await asyncio.gather(first, *waiters)

    assert len(store.saves) == 2
    # the trailing write carries every mutation made while the first was in flight
    assert [mid for mid, _ in store.saves[-1]] == ["0", "1", "2", "3", "4"]
    assert writer.pending == 0
    assert not writer.saving


@pytest.mark.asyncio
async def test_waiters_are_released_when_writes_fail():
    class BrokenStore(GatedStore):
        def save(self, entries) -> bool:
            super().save(entries)
            return False

    store = BrokenStore()
    writer = WriteCoordinator(store, list)

    first = asyncio.create_task(writer.request())
    await _until(lambda: writer.saving and store.saves)
    second = asyncio.create_task(writer.request())
    await _until(lambda: writer.pending == 1)
    store.gate.set()

    await asyncio.wait_for(asyncio.gather(first, second), timeout=5)
    assert len(store.saves) == 2


@pytest.mark.asyncio
async def test_next_request_after_completion_writes_again(store):
    writer = WriteCoordinator(store, list)

    await writer.request()
    await writer.request()

    assert len(store.saves) == 2


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abort_the_write_in_flight():
    class CountingStore(GatedStore):
        def __init__(self) -> None:
            super().__init__()
            self.lock = threading.Lock()
            self.active = 0
            self.peak = 0

        def save(self, entries) -> bool:
            with self.lock:
                self.active += 1
                self.peak = max(self.peak, self.active)
            try:
                return super().save(entries)
            finally:
                with self.lock:
                    self.active -= 1

    store = CountingStore()
    state: list = []
    writer = WriteCoordinator(store, lambda: list(state))

    sweep = asyncio.create_task(writer.request())
    await _until(lambda: store.saves)
    sweep.cancel()
    with pytest.raises(asyncio.CancelledError):
        await sweep

    assert writer.saving
    state.append(("late", "entry"))
    flush = asyncio.create_task(writer.request())
    await _until(lambda: writer.pending == 1)

    store.gate.set()
    await asyncio.wait_for(flush, timeout=5)

    assert store.peak == 1
    assert len(store.saves) == 2
    assert store.saves[-1] == [("late", "entry")]
    assert not writer.saving
