"""Tests for the execution serializer"""

import asyncio

import pytest

from remote_runner.services.serializer import ExecutionSerializer


@pytest.mark.asyncio
async def test_hold_is_exclusive():
    serializer = ExecutionSerializer()
    events: list[str] = []

    async def work(name: str):
        async with serializer.hold(name):
            events.append(f"{name}-start")
            await asyncio.sleep(0.01)
            events.append(f"{name}-end")

    await asyncio.gather(work("a"), work("b"))

    assert events in (
        ["a-start", "a-end", "b-start", "b-end"],
        ["b-start", "b-end", "a-start", "a-end"],
    )


@pytest.mark.asyncio
async def test_locked_reflects_holder():
    serializer = ExecutionSerializer()
    assert not serializer.locked
    async with serializer.hold("test"):
        assert serializer.locked
    assert not serializer.locked


@pytest.mark.asyncio
async def test_released_on_error():
    serializer = ExecutionSerializer()
    with pytest.raises(RuntimeError):
        async with serializer.hold("test"):
            raise RuntimeError("boom")
    assert not serializer.locked
