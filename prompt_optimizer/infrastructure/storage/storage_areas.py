"""
Local Storage Areas

In-process and file-backed implementations of the StorageArea contract.
"""

import asyncio
import errno
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Union

from ...domain.cache.exceptions import (
    StorageQuotaExceededException,
    StorageUnavailableException,
)
from ...domain.cache.repository_interfaces import StorageArea

logger = logging.getLogger(__name__)


class InMemoryStorageArea(StorageArea):
    """
    Dictionary-backed storage area.

    Used for the session tier when no Redis is configured, and in tests.
    ``quota_bytes`` caps the summed length of keys and values the way a
    browser caps Web Storage.
    """

    def __init__(self, quota_bytes: Optional[int] = None):
        if quota_bytes is not None and quota_bytes <= 0:
            raise ValueError("Storage quota must be positive")
        self.quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}

    def _used_bytes(self) -> int:
        return sum(len(k) + len(v) for k, v in self._items.items())

    async def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            current = self._items.get(key)
            required = self._used_bytes() + len(value) + len(key)
            if current is not None:
                required -= len(current) + len(key)
            if required > self.quota_bytes:
                raise StorageQuotaExceededException(
                    key=key, quota_bytes=self.quota_bytes, required_bytes=required
                )
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    async def key(self, index: int) -> Optional[str]:
        if index < 0 or index >= len(self._items):
            return None
        return list(self._items)[index]

    async def length(self) -> int:
        return len(self._items)

    async def clear(self) -> None:
        self._items.clear()


class FileStorageArea(StorageArea):
    """
    Storage area persisted as a single JSON document on disk.

    Survives process restarts, so it backs the persistent tier by default.
    The document is reloaded when its modification time changes and every
    write replaces it atomically through a temporary file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._items: Dict[str, str] = {}
        self._loaded_mtime: Optional[int] = None
        self._lock = asyncio.Lock()

    def _read_document(self) -> Dict[str, str]:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            self._loaded_mtime = None
            return {}

        if self._loaded_mtime == stat.st_mtime_ns:
            return self._items

        raw = self.path.read_bytes()
        self._loaded_mtime = stat.st_mtime_ns
        try:
            # UnicodeDecodeError is a ValueError
            text = raw.decode("utf-8")
            document = json.loads(text) if text.strip() else {}
        except ValueError:
            logger.warning(
                f"Discarding unreadable cache storage file {self.path}",
                extra={"path": str(self.path)},
            )
            return {}

        if not isinstance(document, dict):
            logger.warning(
                f"Discarding malformed cache storage file {self.path}",
                extra={"path": str(self.path)},
            )
            return {}

        return {k: v for k, v in document.items() if isinstance(v, str)}

    def _write_document(self, items: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(items, handle)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
        self._loaded_mtime = self.path.stat().st_mtime_ns

    async def _load(self, operation: str) -> Dict[str, str]:
        try:
            self._items = await asyncio.to_thread(self._read_document)
        except OSError as e:
            raise StorageUnavailableException(
                f"Failed to read cache storage file {self.path}",
                operation=operation,
                original_error=e,
            ) from e
        return self._items

    async def _store(self, items: Dict[str, str], operation: str, key: Optional[str] = None) -> None:
        try:
            await asyncio.to_thread(self._write_document, items)
        except OSError as e:
            # Forget cached state so the next read reloads from disk
            self._loaded_mtime = None
            if e.errno in (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)):
                raise StorageQuotaExceededException(
                    f"No space left for cache storage file {self.path}", key=key
                ) from e
            raise StorageUnavailableException(
                f"Failed to write cache storage file {self.path}",
                operation=operation,
                key=key,
                original_error=e,
            ) from e
        self._items = items

    async def get_item(self, key: str) -> Optional[str]:
        async with self._lock:
            items = await self._load("get_item")
            return items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            items = dict(await self._load("set_item"))
            items[key] = value
            await self._store(items, "set_item", key)

    async def remove_item(self, key: str) -> None:
        async with self._lock:
            items = await self._load("remove_item")
            if key not in items:
                return
            items = dict(items)
            del items[key]
            await self._store(items, "remove_item", key)

    async def key(self, index: int) -> Optional[str]:
        async with self._lock:
            items = await self._load("key")
            if index < 0 or index >= len(items):
                return None
            return list(items)[index]

    async def length(self) -> int:
        async with self._lock:
            return len(await self._load("length"))

    async def clear(self) -> None:
        async with self._lock:
            await self._store({}, "clear")
