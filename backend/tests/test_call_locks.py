"""Tests for the per-call lock registry."""
import asyncio

from fieldops.domain.coach.locks import CallLockRegistry


async def test_same_call_is_serialized():
    registry = CallLockRegistry()
    order = []

    async def worker(name):
        async with registry.hold("call-1"):
            order.append(f"{name}:in")
            await asyncio.sleep(0.01)
            order.append(f"{name}:out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order == ["a:in", "a:out", "b:in", "b:out"]
    assert len(registry) == 0


async def test_different_calls_do_not_wait_on_each_other():
    registry = CallLockRegistry()
    entered = asyncio.Event()

    async def holder():
        async with registry.hold("call-1"):
            entered.set()
            await asyncio.sleep(0.05)

    task = asyncio.ensure_future(holder())
    await entered.wait()
    async with registry.hold("call-2"):
        assert len(registry) == 2
    await task
    assert len(registry) == 0


async def test_entry_released_after_error():
    registry = CallLockRegistry()
    try:
        async with registry.hold("call-1"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert len(registry) == 0
