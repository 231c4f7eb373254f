import asyncio

from parkit.locks import KeyedLock


async def test_same_key_is_serialized():
    locks = KeyedLock("test")
    inside = 0
    peak = 0

    async def worker():
        nonlocal inside, peak
        async with locks.hold("lot-1"):
            inside += 1
            peak = max(peak, inside)
            await asyncio.sleep(0.01)
            inside -= 1

    await asyncio.gather(*(worker() for _ in range(5)))
    assert peak == 1


async def test_different_keys_do_not_block_each_other():
    locks = KeyedLock("test")
    first_holding = asyncio.Event()
    release_first = asyncio.Event()

    async def first():
        async with locks.hold("a"):
            first_holding.set()
            await release_first.wait()

    task = asyncio.create_task(first())
    await first_holding.wait()
    async with locks.hold("b"):
        pass
    release_first.set()
    await task


async def test_entries_are_dropped_when_released():
    locks = KeyedLock("test")
    async with locks.hold(1):
        assert len(locks) == 1
    assert len(locks) == 0


async def test_entry_dropped_after_exception():
    locks = KeyedLock("test")
    try:
        async with locks.hold("x"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert len(locks) == 0
