import asyncio

from wa_recall.memory.cache import CacheEntry, ExpiringCache


def _entry(created_at: int, sender: str = "50922222222@s.whatsapp.net") -> CacheEntry:
    return CacheEntry(
        kind="ptt",
        payload=b"voice",
        mime_type="audio/ogg; codecs=opus",
        sender=sender,
        sender_display="@" + sender.split("@")[0],
        created_at=created_at,
        chat_id="12036300000@g.us",
    )


def test_get_returns_entry_unchanged_before_ttl(store, clock):
    cache = ExpiringCache(store, clock=clock)
    entry = _entry(clock.now)

    asyncio.run(cache.add("A", entry))
    clock.advance(29)

    assert cache.has("A")
    assert cache.get("A") is entry
    assert not cache.is_expired(cache.get("A"))
    assert len(store.saves) == 1


def test_sweep_keeps_fresh_and_drops_stale_entries(store, clock):
    cache = ExpiringCache(store, clock=clock)
    asyncio.run(cache.add("A", _entry(clock.now)))
    saves_after_add = len(store.saves)

    clock.advance(10)
    assert asyncio.run(cache.sweep_expired()) == 0
    assert cache.has("A")
    assert len(store.saves) == saves_after_add

    clock.advance(21)
    assert asyncio.run(cache.sweep_expired()) == 1
    assert not cache.has("A")
    assert len(store.saves) == saves_after_add + 1
    assert store.saves[-1] == []


def test_unforced_sweep_inspects_at_most_one_batch(store, clock):
    cache = ExpiringCache(store, clock=clock, sweep_batch=3)
    cache._entries = {str(i): _entry(clock.now) for i in range(5)}
    clock.advance(31)

    assert asyncio.run(cache.sweep_expired()) == 3
    assert list(cache) == ["3", "4"]

    assert asyncio.run(cache.sweep_expired(force=True)) == 2
    assert len(cache) == 0


def test_add_at_ceiling_runs_forced_sweep_but_never_rejects(store, clock):
    cache = ExpiringCache(store, clock=clock, max_entries=1000)
    cache._entries = {str(i): _entry(clock.now - 60_000) for i in range(1000)}

    asyncio.run(cache.add("X", _entry(clock.now)))

    assert len(cache) == 1001
    assert cache.has("X")


def test_add_at_ceiling_evicts_stale_entries_first(store, clock):
    cache = ExpiringCache(store, clock=clock, max_entries=4)
    cache._entries = {
        "old-1": _entry(clock.now - 31 * 60_000),
        "old-2": _entry(clock.now - 40 * 60_000),
        "fresh-1": _entry(clock.now - 60_000),
        "fresh-2": _entry(clock.now),
    }

    asyncio.run(cache.add("X", _entry(clock.now)))

    assert list(cache) == ["fresh-1", "fresh-2", "X"]
    assert len(store.saves) == 1


def test_readding_an_id_overwrites_and_moves_it_to_the_end(store, clock):
    cache = ExpiringCache(store, clock=clock)
    asyncio.run(cache.add("A", _entry(clock.now)))
    asyncio.run(cache.add("B", _entry(clock.now)))
    clock.advance(1)
    newer = _entry(clock.now)
    asyncio.run(cache.add("A", newer))

    assert list(cache) == ["B", "A"]
    assert cache.get("A") is newer
    assert len(cache) == 2


def test_remove_absent_id_is_a_silent_no_op(store, clock):
    cache = ExpiringCache(store, clock=clock)

    assert asyncio.run(cache.remove("missing")) is False
    assert store.saves == []


def test_clear_ignores_ttl_and_persists_once(store, clock):
    cache = ExpiringCache(store, clock=clock)
    cache._entries = {str(i): _entry(clock.now) for i in range(5)}

    assert asyncio.run(cache.clear()) == 5
    assert len(cache) == 0
    assert store.saves == [[]]


def test_init_loads_snapshot_in_order(store, clock):
    store.initial = [("b", _entry(clock.now)), ("a", _entry(clock.now))]
    cache = ExpiringCache(store, clock=clock)

    assert cache.init() == 2
    assert list(cache) == ["b", "a"]


def test_sweep_interval_is_capped_at_five_minutes(store):
    assert ExpiringCache(store).sweep_interval == 300
    assert ExpiringCache(store, ttl_ms=60_000).sweep_interval == 60


def test_restarting_sweeper_cancels_previous_task(store, clock):
    async def scenario():
        cache = ExpiringCache(store, clock=clock)
        await cache.start_sweeper()
        first = cache._sweep_task
        await cache.start_sweeper()
        second = cache._sweep_task
        assert first.cancelled()
        assert cache.sweeping
        await cache.shutdown()
        assert second.cancelled()
        assert not cache.sweeping

    asyncio.run(scenario())
    # shutdown performs a final flush
    assert store.saves == [[]]
