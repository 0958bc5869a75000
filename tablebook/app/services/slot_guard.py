"""Short Redis lock around the check-then-write of a create.

Creates for the same date are serialized across every process sharing the
Redis instance. Writers that bypass this service can still overbook; the
store offers no conditional write to close that gap.
"""
import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from uuid import uuid4

import redis.asyncio as redis
from redis.exceptions import RedisError
import structlog

from tablebook.app.core.errors import RepositoryUnavailable, SlotBusy


logger = structlog.get_logger()

POLL_INTERVAL_SECONDS = 0.1

# Only the holder's token may release the lock
_RELEASE = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _guard_key(day: date) -> str:
    return f"hold:create:{day.strftime('%Y%m%d')}"


class SlotGuard:
    def __init__(self, client: redis.Redis | None, *, ttl_seconds: int, wait_seconds: float) -> None:
        self._client = client
        self._ttl_ms = ttl_seconds * 1000
        self._wait_seconds = wait_seconds

    @asynccontextmanager
    async def hold(self, day: date) -> AsyncIterator[None]:
        if self._client is None:
            yield
            return

        key = _guard_key(day)
        token = str(uuid4())
        deadline = time.monotonic() + self._wait_seconds
        while not await self._acquire(key, token):
            if time.monotonic() >= deadline:
                logger.warning("Slot guard busy", key=key)
                raise SlotBusy("Another booking for this date is in progress", date=day.isoformat())
            await asyncio.sleep(POLL_INTERVAL_SECONDS)

        try:
            yield
        finally:
            try:
                await self._client.eval(_RELEASE, 1, key, token)
            except RedisError as exc:
                # the TTL frees the key anyway
                logger.warning("Slot guard release failed", key=key, error=str(exc))

    async def _acquire(self, key: str, token: str) -> bool:
        try:
            return bool(await self._client.set(key, token, nx=True, px=self._ttl_ms))
        except RedisError as exc:
            raise RepositoryUnavailable("Slot guard unavailable") from exc
