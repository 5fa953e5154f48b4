# tests/test_kv_store.py
import asyncio

import pytest
from redis.exceptions import TimeoutError as RedisTimeoutError

from clinic.storage.base import StorageError
from clinic.storage.kv import JsonFileStore, MemoryStore, RedisStore


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the store."""

    def __init__(self):
        self.data = {}
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value.encode("utf-8")

    async def delete(self, key):
        self.data.pop(key, None)

    async def aclose(self):
        self.closed = True


@pytest.fixture(params=["memory", "file", "redis"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    if request.param == "file":
        return JsonFileStore(str(tmp_path / "kv"))
    return RedisStore(FakeRedis())


@pytest.mark.asyncio
async def test_get_set_delete(store):
    assert await store.get("patients") is None

    await store.set("patients", "[]")
    await store.set("patients", '[{"id": "p-1"}]')
    assert await store.get("patients") == '[{"id": "p-1"}]'

    await store.delete("patients")
    assert await store.get("patients") is None
    # Deleting a missing key is a no-op
    await store.delete("patients")

@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["../etc/passwd", "Patients", "", "clinic pin"])
async def test_rejects_unsafe_keys(store, key):
    with pytest.raises(ValueError):
        await store.set(key, "x")

@pytest.mark.asyncio
async def test_redis_keys_are_prefixed():
    client = FakeRedis()
    store = RedisStore(client, prefix="test:")

    await store.set("clinic_pin", "hash")

    assert client.data == {"test:clinic_pin": b"hash"}
    assert await store.get("clinic_pin") == "hash"

    await store.close()
    assert client.closed

@pytest.mark.asyncio
async def test_file_store_writes_utf8(tmp_path):
    store = JsonFileStore(str(tmp_path / "kv"))

    await store.set("expenses", '[{"title": "दवा"}]')

    assert (tmp_path / "kv" / "expenses.json").read_text(encoding="utf-8") == '[{"title": "दवा"}]'

@pytest.mark.asyncio
async def test_redis_errors_surface_as_storage_errors():
    class DownRedis(FakeRedis):
        async def get(self, key):
            raise RedisTimeoutError("Timeout reading from socket")

        async def set(self, key, value):
            raise RedisTimeoutError("Timeout writing to socket")

    store = RedisStore(DownRedis())

    with pytest.raises(StorageError):
        await store.get("patients")
    with pytest.raises(StorageError):
        await store.set("patients", "[]")

@pytest.mark.asyncio
async def test_file_store_concurrent_writers(tmp_path):
    store = JsonFileStore(str(tmp_path / "kv"))

    await asyncio.gather(*[store.set("clinic_pin", f"hash-{i}") for i in range(10)])

    assert (await store.get("clinic_pin")).startswith("hash-")
    assert [p.name for p in (tmp_path / "kv").iterdir()] == ["clinic_pin.json"]
