"""Durable homes for the serialized record cache.

Both backends hold exactly one blob: the whole cache, under one key or in
one file. Any I/O failure surfaces as StoreUnavailable.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from dashboard_shared.constants import StorageKeys
from entity_engine.core.exceptions import StoreUnavailable
from entity_engine.utils.concurrency import run_blocking


class BlobBackend(Protocol):
    async def load(self) -> Optional[str]: ...

    async def save(self, blob: str) -> None: ...

    async def ping(self) -> bool: ...


class RedisBlobBackend:
    """Single Redis string value under a fixed key."""

    def __init__(self, redis: Redis, key: str = StorageKeys.RECORD_CACHE):
        self.r = redis
        self.key = key

    async def load(self) -> Optional[str]:
        try:
            value = await self.r.get(self.key)
        except RedisError as e:
            raise StoreUnavailable(f"redis read failed: {e}") from e
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        return value

    async def save(self, blob: str) -> None:
        try:
            await self.r.set(self.key, blob)
        except RedisError as e:
            raise StoreUnavailable(f"redis write failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self.r.ping())
        except RedisError:
            return False


class FileBlobBackend:
    """Single JSON file, replaced atomically on every save."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    async def load(self) -> Optional[str]:
        return await run_blocking(self._read)

    async def save(self, blob: str) -> None:
        await run_blocking(self._write, blob)

    async def ping(self) -> bool:
        return await run_blocking(self._writable)

    def _read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StoreUnavailable(f"cannot read {self.path}: {e}") from e

    def _write(self, blob: str) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(blob)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreUnavailable(f"cannot write {self.path}: {e}") from e

    def _writable(self) -> bool:
        parent = self.path.parent
        if parent.exists():
            return os.access(parent, os.W_OK)
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        return True
