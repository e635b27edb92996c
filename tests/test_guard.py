import asyncio

import pytest

from core.guard import SingleFlight


def test_second_caller_is_turned_away():
    async def scenario():
        guard = SingleFlight()
        async with guard.try_acquire() as first:
            assert first is True
            assert guard.busy
            async with guard.try_acquire() as second:
                assert second is False
        assert not guard.busy

    asyncio.run(scenario())


def test_released_after_exception():
    async def scenario():
        guard = SingleFlight()
        with pytest.raises(RuntimeError):
            async with guard.try_acquire() as acquired:
                assert acquired
                raise RuntimeError("boom")
        assert not guard.busy
        async with guard.try_acquire() as again:
            assert again is True

    asyncio.run(scenario())
