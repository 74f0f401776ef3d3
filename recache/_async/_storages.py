from __future__ import annotations

import time
import typing as tp

import anyio

try:
    import anysqlite
except ImportError:  # pragma: no cover
    anysqlite = None  # type: ignore

try:
    import redis.asyncio as redis
except ImportError:  # pragma: no cover
    redis = None  # type: ignore

from .._lfu_cache import LFUCache
from .._utils import float_seconds_to_int_milliseconds

__all__ = (
    "AsyncBaseStorage",
    "AsyncInMemoryStorage",
    "AsyncRedisStorage",
    "AsyncSQLiteStorage",
)

StoredValue = tp.Union[str, bytes]


def _to_bytes(value: StoredValue) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


class AsyncBaseStorage:
    """
    A key-value backend with per-key expiration.

    Backends may drop entries before they expire; callers treat a missing
    value as a cold cache, never as an error.
    """

    async def get(self, key: str) -> tp.Optional[bytes]:
        raise NotImplementedError()

    async def set(self, key: str, value: StoredValue, ttl: tp.Optional[tp.Union[int, float]] = None) -> None:
        raise NotImplementedError()

    async def aclose(self) -> None:
        raise NotImplementedError()


class AsyncInMemoryStorage(AsyncBaseStorage):
    """
    A simple in-memory storage.

    :param capacity: The maximum number of values that can be stored, defaults to 1024
    :type capacity: int, optional
    """

    def __init__(self, capacity: int = 1024) -> None:
        self._cache: LFUCache[str, bytes] = LFUCache(capacity=capacity)
        self._lock = anyio.Lock()

    async def get(self, key: str) -> tp.Optional[bytes]:
        """
        Retrieves a value by its key.

        :param key: The storage key
        :type key: str
        :return: The stored value, or None when it is missing or expired
        :rtype: tp.Optional[bytes]
        """

        async with self._lock:
            try:
                return self._cache.get(key)
            except KeyError:
                return None

    async def set(self, key: str, value: StoredValue, ttl: tp.Optional[tp.Union[int, float]] = None) -> None:
        """
        Stores a value.

        :param key: The storage key
        :type key: str
        :param value: The value to store
        :type value: tp.Union[str, bytes]
        :param ttl: Number of seconds after which the value expires, defaults to None (never)
        :type ttl: tp.Optional[tp.Union[int, float]], optional
        """

        async with self._lock:
            self._cache.put(key, _to_bytes(value), ttl=ttl)

    async def aclose(self) -> None:  # pragma: no cover
        return


class AsyncRedisStorage(AsyncBaseStorage):
    """
    A simple redis storage.

    :param client: A client for redis, defaults to None
    :type client: tp.Optional["redis.Redis"], optional
    """

    def __init__(
        self,
        client: tp.Optional[redis.Redis] = None,  # type: ignore
    ) -> None:
        if redis is None:  # pragma: no cover
            raise RuntimeError(
                f"The `{type(self).__name__}` was used, but the required packages were not found. "
                "Check that you have `recache` installed with the `redis` extension as shown.\n"
                "```pip install recache[redis]```"
            )

        if client is None:  # pragma: no cover
            self._client = redis.Redis()  # type: ignore
        else:
            self._client = client

    async def get(self, key: str) -> tp.Optional[bytes]:
        """
        Retrieves a value by its key.

        :param key: The storage key
        :type key: str
        :return: The stored value, or None when it is missing or expired
        :rtype: tp.Optional[bytes]
        """

        value = await self._client.get(key)
        if value is None:
            return None
        return _to_bytes(value)

    async def set(self, key: str, value: StoredValue, ttl: tp.Optional[tp.Union[int, float]] = None) -> None:
        """
        Stores a value.

        :param key: The storage key
        :type key: str
        :param value: The value to store
        :type value: tp.Union[str, bytes]
        :param ttl: Number of seconds after which the value expires, defaults to None (never)
        :type ttl: tp.Optional[tp.Union[int, float]], optional
        """

        px = float_seconds_to_int_milliseconds(ttl) if ttl is not None else None
        await self._client.set(key, _to_bytes(value), px=px)

    async def aclose(self) -> None:  # pragma: no cover
        await self._client.aclose()


class AsyncSQLiteStorage(AsyncBaseStorage):
    """
    A simple sqlite3 storage.

    :param connection: A connection for sqlite, defaults to None
    :type connection: tp.Optional[anysqlite.Connection], optional
    """

    def __init__(
        self,
        connection: tp.Optional[anysqlite.Connection] = None,
    ) -> None:
        if anysqlite is None:  # pragma: no cover
            raise RuntimeError(
                f"The `{type(self).__name__}` was used, but the required packages were not found. "
                "Check that you have `recache` installed with the `sqlite` extension as shown.\n"
                "```pip install recache[sqlite]```"
            )

        self._connection: tp.Optional[anysqlite.Connection] = connection or None
        self._setup_lock = anyio.Lock()
        self._setup_completed: bool = False
        self._lock = anyio.Lock()

    async def _setup(self) -> None:
        async with self._setup_lock:
            if not self._setup_completed:
                if not self._connection:  # pragma: no cover
                    self._connection = await anysqlite.connect(".recache.sqlite", check_same_thread=False)
                await self._connection.execute(
                    "CREATE TABLE IF NOT EXISTS cache(key TEXT PRIMARY KEY, data BLOB, expires_at REAL)"
                )
                await self._connection.commit()
                self._setup_completed = True

    async def get(self, key: str) -> tp.Optional[bytes]:
        """
        Retrieves a value by its key.

        :param key: The storage key
        :type key: str
        :return: The stored value, or None when it is missing or expired
        :rtype: tp.Optional[bytes]
        """

        await self._setup()
        assert self._connection

        async with self._lock:
            cursor = await self._connection.execute(
                "SELECT data FROM cache WHERE key = ? AND (expires_at IS NULL OR expires_at > ?)",
                [key, time.time()],
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return _to_bytes(row[0])

    async def set(self, key: str, value: StoredValue, ttl: tp.Optional[tp.Union[int, float]] = None) -> None:
        """
        Stores a value.

        :param key: The storage key
        :type key: str
        :param value: The value to store
        :type value: tp.Union[str, bytes]
        :param ttl: Number of seconds after which the value expires, defaults to None (never)
        :type ttl: tp.Optional[tp.Union[int, float]], optional
        """

        await self._setup()
        assert self._connection

        expires_at = time.time() + ttl if ttl is not None else None
        async with self._lock:
            await self._connection.execute(
                "INSERT OR REPLACE INTO cache(key, data, expires_at) VALUES(?, ?, ?)",
                [key, _to_bytes(value), expires_at],
            )
            await self._connection.commit()
        await self._remove_expired_caches()

    async def aclose(self) -> None:  # pragma: no cover
        if self._connection is not None:
            await self._connection.close()

    async def _remove_expired_caches(self) -> None:
        assert self._connection

        async with self._lock:
            await self._connection.execute("DELETE FROM cache WHERE expires_at <= ?", [time.time()])
            await self._connection.commit()
