# clinic/storage/kv.py
"""
Durable key/value stores for the local persistence variant.

A store holds one string document per key. Writes replace the whole value;
readers never observe a half-written document.
"""
import logging
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import aiofiles
import aiofiles.os
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .base import StorageError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


def _check_key(key: str) -> str:
    if not _KEY_PATTERN.match(key):
        raise ValueError(f"Invalid store key: {key!r}")
    return key


class KeyValueStore(ABC):

    @abstractmethod
    async def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    async def close(self) -> None:
        pass


class MemoryStore(KeyValueStore):
    """Process-local store; nothing survives a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(_check_key(key))

    async def set(self, key: str, value: str) -> None:
        self._data[_check_key(key)] = value

    async def delete(self, key: str) -> None:
        self._data.pop(_check_key(key), None)


class JsonFileStore(KeyValueStore):
    """One ``<key>.json`` file per key under ``directory``.

    ``set`` writes a uniquely named sibling temp file and renames it over
    the target, so a crash mid-write leaves the previous document intact
    and concurrent writers never share a temp file.
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_check_key(key)}.json"

    async def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()

    async def set(self, key: str, value: str) -> None:
        path = self._path(key)
        await aiofiles.os.makedirs(self.directory, exist_ok=True)
        tmp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(value)
            await f.flush()
        await aiofiles.os.replace(tmp_path, path)

    async def delete(self, key: str) -> None:
        path = self._path(key)
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)


class RedisStore(KeyValueStore):
    """Keys live under ``prefix`` in a Redis database."""

    def __init__(self, client, prefix: str = "clinic:"):
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "clinic:") -> "RedisStore":
        return cls(aioredis.from_url(url, decode_responses=True), prefix=prefix)

    async def get(self, key: str) -> Optional[str]:
        key = self._prefix + _check_key(key)
        try:
            value = await self._client.get(key)
        except RedisError as e:
            raise StorageError(f"Redis read of {key} failed: {e}") from e
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        key = self._prefix + _check_key(key)
        try:
            await self._client.set(key, value)
        except RedisError as e:
            raise StorageError(f"Redis write of {key} failed: {e}") from e

    async def delete(self, key: str) -> None:
        key = self._prefix + _check_key(key)
        try:
            await self._client.delete(key)
        except RedisError as e:
            raise StorageError(f"Redis delete of {key} failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
