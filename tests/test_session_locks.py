import asyncio

from xiaoyue.core.session import SessionLocks


async def test_disabled_locks_do_not_serialize():
    locks = SessionLocks(enabled=False)
    inside = 0
    peak = 0

    async def worker():
        nonlocal inside, peak
        async with locks.hold("s1"):
            inside += 1
            peak = max(peak, inside)
            await asyncio.sleep(0.01)
            inside -= 1

    await asyncio.gather(worker(), worker())
    assert peak == 2


async def test_enabled_locks_serialize_per_session_only():
    locks = SessionLocks(enabled=True)
    order: list[str] = []

    async def worker(session_id: str, tag: str):
        async with locks.hold(session_id):
            order.append(f"{tag}-in")
            await asyncio.sleep(0.01)
            order.append(f"{tag}-out")

    await asyncio.gather(worker("s1", "a"), worker("s1", "b"))
    assert order == ["a-in", "a-out", "b-in", "b-out"]

    order.clear()
    await asyncio.gather(worker("s1", "a"), worker("s2", "b"))
    assert order[:2] == ["a-in", "b-in"]


async def test_locks_are_released_after_use():
    locks = SessionLocks(enabled=True)
    async with locks.hold("s1"):
        assert locks.active() == 1
    assert locks.active() == 0
