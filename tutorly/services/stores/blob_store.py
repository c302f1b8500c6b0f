from __future__ import annotations

from typing import Protocol

from redis.asyncio import Redis


class BlobStore(Protocol):
    async def load(self, key: str) -> bytes | None: ...

    async def save(self, key: str, value: bytes) -> None: ...

    async def clear(self, key: str) -> None: ...


class RedisBlobStore:
    def __init__(self, redis: Redis, prefix: str = "tutorly") -> None:
        self._redis = redis
        self._prefix = prefix

    async def load(self, key: str) -> bytes | None:
        raw = await self._redis.get(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw
        return str(raw).encode("utf-8")

    async def save(self, key: str, value: bytes) -> None:
        await self._redis.set(self._key(key), value)

    async def clear(self, key: str) -> None:
        await self._redis.delete(self._key(key))

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"
