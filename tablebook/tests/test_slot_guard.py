import asyncio
from datetime import date

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from tablebook.app.core.errors import RepositoryUnavailable, SlotBusy
from tablebook.app.services.slot_guard import SlotGuard


pytestmark = pytest.mark.asyncio(loop_scope="module")

DAY = date(2025, 6, 1)


class FakeRedis:
    """Just enough of SET NX PX and the release script."""

    def __init__(self, *, fail_set: bool = False, fail_eval: bool = False):
        self.values: dict[str, str] = {}
        self.fail_set = fail_set
        self.fail_eval = fail_eval

    async def set(self, key, value, nx=False, px=None):
        if self.fail_set:
            raise RedisConnectionError("connection refused")
        if nx and key in self.values:
            return None
        self.values[key] = value
        return True

    async def eval(self, script, numkeys, key, token):
        if self.fail_eval:
            raise RedisConnectionError("connection reset")
        if self.values.get(key) == token:
            del self.values[key]
            return 1
        return 0


async def test_hold_sets_and_releases_the_date_key():
    client = FakeRedis()
    guard = SlotGuard(client, ttl_seconds=15, wait_seconds=0.5)

    async with guard.hold(DAY):
        assert list(client.values) == ["hold:create:20250601"]

    assert client.values == {}


async def test_second_holder_waits_then_gives_up():
    client = FakeRedis()
    guard = SlotGuard(client, ttl_seconds=15, wait_seconds=0.2)

    async with guard.hold(DAY):
        with pytest.raises(SlotBusy):
            async with guard.hold(DAY):
                pass

    # the failed attempt must not have released the first holder's key early
    assert client.values == {}


async def test_waiter_gets_the_lock_once_released():
    client = FakeRedis()
    guard = SlotGuard(client, ttl_seconds=15, wait_seconds=2)
    order: list[str] = []

    async def first():
        async with guard.hold(DAY):
            order.append("first")
            await asyncio.sleep(0.15)

    async def second():
        await asyncio.sleep(0.01)
        async with guard.hold(DAY):
            order.append("second")

    await asyncio.gather(first(), second())

    assert order == ["first", "second"]


async def test_other_dates_are_independent():
    client = FakeRedis()
    guard = SlotGuard(client, ttl_seconds=15, wait_seconds=0)

    async with guard.hold(DAY):
        async with guard.hold(date(2025, 6, 2)):
            assert len(client.values) == 2


async def test_redis_down_fails_closed():
    guard = SlotGuard(FakeRedis(fail_set=True), ttl_seconds=15, wait_seconds=0.2)

    with pytest.raises(RepositoryUnavailable):
        async with guard.hold(DAY):
            pass


async def test_release_failure_does_not_mask_the_write():
    client = FakeRedis(fail_eval=True)
    guard = SlotGuard(client, ttl_seconds=15, wait_seconds=0.2)
    done = False

    async with guard.hold(DAY):
        done = True

    assert done


async def test_without_redis_the_guard_is_a_no_op():
    guard = SlotGuard(None, ttl_seconds=15, wait_seconds=0)

    async with guard.hold(DAY):
        async with guard.hold(DAY):
            pass
