"""
Redis-based distributed lock.

Used by the location feed so that only one process pushes driver
locations for a given request.  A feed holds its lock for as long as the
request stays active and renews the TTL on every tick; if the process
dies the lock simply expires.

SET NX EX to acquire; Lua scripts make renew and release atomic
check-then-act operations on the owner token.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

_RELEASE_LUA = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

_RENEW_LUA = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("expire", KEYS[1], ARGV[2])
else
    return 0
end
"""


class LockNotAcquired(RuntimeError):
    pass


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 60
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = uuid.uuid4().hex

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def renew(self) -> bool:
        """Push the expiry out by another TTL; False if ownership was lost."""
        return bool(
            await self.redis.eval(_RENEW_LUA, 1, self.key, self.token, self.ttl)
        )

    async def release(self) -> None:
        """Release only if we still own the lock."""
        await self.redis.eval(_RELEASE_LUA, 1, self.key, self.token)

    async def __aenter__(self):
        if not await self.acquire():
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()
