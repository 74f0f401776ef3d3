import typing as tp

import anysqlite
import pytest

from recache import AsyncInMemoryStorage, AsyncRedisStorage, AsyncSQLiteStorage


class FakeRedis:
    def __init__(self) -> None:
        self.data: tp.Dict[str, bytes] = {}
        self.px: tp.Dict[str, tp.Optional[int]] = {}

    async def get(self, key: str) -> tp.Optional[bytes]:
        return self.data.get(key)

    async def set(self, key: str, value: bytes, px: tp.Optional[int] = None) -> None:
        self.data[key] = value
        self.px[key] = px


@pytest.mark.anyio
async def test_inmemorystorage():
    storage = AsyncInMemoryStorage()

    await storage.set("response-cache:abc:body", b"test", 600)

    assert await storage.get("response-cache:abc:body") == b"test"
    assert await storage.get("response-cache:abc:meta") is None


@pytest.mark.anyio
async def test_inmemorystorage_encodes_text():
    storage = AsyncInMemoryStorage()

    await storage.set("key", "héllo")

    assert await storage.get("key") == "héllo".encode("utf-8")


@pytest.mark.anyio
async def test_inmemorystorage_expired_value():
    storage = AsyncInMemoryStorage()

    await storage.set("key", b"test", 0)

    assert await storage.get("key") is None


@pytest.mark.anyio
async def test_inmemorystorage_capacity():
    storage = AsyncInMemoryStorage(capacity=2)

    await storage.set("first", b"1")
    await storage.set("second", b"2")
    await storage.get("second")
    await storage.set("third", b"3")

    assert await storage.get("first") is None
    assert await storage.get("second") == b"2"
    assert await storage.get("third") == b"3"


@pytest.mark.anyio
async def test_sqlitestorage():
    storage = AsyncSQLiteStorage(connection=await anysqlite.connect(":memory:"))

    await storage.set("key", b"test", 600)
    await storage.set("other", "text")

    assert await storage.get("key") == b"test"
    assert await storage.get("other") == b"text"
    assert await storage.get("missing") is None


@pytest.mark.anyio
async def test_sqlitestorage_overwrites_value():
    storage = AsyncSQLiteStorage(connection=await anysqlite.connect(":memory:"))

    await storage.set("key", b"first", 600)
    await storage.set("key", b"second", 600)

    assert await storage.get("key") == b"second"


@pytest.mark.anyio
async def test_sqlitestorage_expired_value():
    storage = AsyncSQLiteStorage(connection=await anysqlite.connect(":memory:"))

    await storage.set("key", b"test", 0)

    assert await storage.get("key") is None


@pytest.mark.anyio
async def test_redisstorage():
    client = FakeRedis()
    storage = AsyncRedisStorage(client=client)

    await storage.set("key", "test", 1.5)
    await storage.set("forever", b"test")

    assert await storage.get("key") == b"test"
    assert await storage.get("missing") is None
    assert client.px == {"key": 1500, "forever": None}
