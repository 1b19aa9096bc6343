"""
File-backed persistent key-value storage.

The whole store is one JSON object of string values on disk. It is read
once on first access and rewritten after every mutation through a temp
file in the same directory, so readers only ever see the old or the new
store, never a partial one.

The in-memory copy follows the file: a mutation whose write fails leaves
both unchanged, so a failed write can never show up in a later snapshot.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

import aiofiles
import aiofiles.os

from ..exceptions import StorageIOError
from .base import KeyValueStorage

logger = logging.getLogger(__name__)


async def _read_store_file(path: Path) -> object:
    """Parsed content of the store file, or None when it is absent or blank.

    Raises:
        StorageIOError: If the file cannot be read or is not JSON
    """
    try:
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, encoding="utf-8") as f:
            content = await f.read()
    except OSError as e:
        raise StorageIOError("read_store", str(path), e) from e

    if not content.strip():
        return None

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise StorageIOError("parse_store", str(path), e) from e


async def _replace_store_file(path: Path, data: dict[str, str]) -> None:
    """Write data to a sibling temp file, fsync it and move it over path.

    Raises:
        StorageIOError: If any step fails (the temp file is removed)
    """
    try:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        os.close(fd)
    except OSError as e:
        raise StorageIOError("write_store", str(path), e) from e

    try:
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, indent=2, sort_keys=True))
            await f.flush()
            os.fsync(f.fileno())
        await aiofiles.os.replace(temp_path, path)
    except OSError as e:
        try:
            await aiofiles.os.remove(temp_path)
        except OSError:
            pass
        raise StorageIOError("write_store", str(path), e) from e


class JsonFileKeyValueStorage(KeyValueStorage):
    """Key-value storage persisted to a JSON file.

    Example:
        >>> storage = JsonFileKeyValueStorage(Path("~/.hideout/local_storage.json"))
        >>> await storage.set_item("hideout_settings", '{"theme": "dark"}')
    """

    def __init__(self, path: Path | str):
        """Initialize file storage.

        Args:
            path: JSON file holding the store (created on first write)
        """
        self.path = Path(path).expanduser()
        self._data: dict[str, str] | None = None

    async def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data

        try:
            raw = await _read_store_file(self.path)
        except StorageIOError as e:
            logger.warning(f"Discarding unreadable storage file {self.path}: {e}")
            raw = None

        if not isinstance(raw, dict):
            raw = {}

        # Only string values are valid storage entries
        self._data = {str(k): v for k, v in raw.items() if isinstance(v, str)}
        return self._data

    async def _commit(self, data: dict[str, str]) -> None:
        """Persist data, then make it the in-memory copy."""
        await _replace_store_file(self.path, data)
        self._data = data

    async def get_item(self, key: str) -> str | None:
        data = await self._load()
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be strings, got {type(value).__name__}")
        data = await self._load()
        await self._commit({**data, key: value})

    async def remove_item(self, key: str) -> None:
        data = await self._load()
        if key not in data:
            return
        await self._commit({k: v for k, v in data.items() if k != key})

    async def keys(self) -> list[str]:
        data = await self._load()
        return list(data)

    async def clear(self) -> None:
        await self._load()
        await self._commit({})

    async def reload(self) -> None:
        """Drop the in-memory copy so the next access rereads the file."""
        self._data = None
