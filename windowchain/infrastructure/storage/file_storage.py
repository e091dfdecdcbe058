"""
File Cache Storage

Stores each slot as a JSON text file inside a directory.
Writes go through a temporary file and an atomic rename so a crash
mid-write leaves the previous snapshot intact.
"""

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Optional, Union

from ...domain.cache.repository_interfaces import CacheStorage

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class FileStorage(CacheStorage):
    """Directory of ``<slot>.json`` files."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path_for(self, slot: str) -> Path:
        if not slot:
            raise ValueError("Storage slot cannot be empty")
        return self.directory / f"{_UNSAFE_CHARS.sub('_', slot)}.json"

    async def load(self, slot: str) -> Optional[str]:
        path = self._path_for(slot)
        return await asyncio.to_thread(self._read, path)

    async def save(self, slot: str, payload: str) -> None:
        path = self._path_for(slot)
        await asyncio.to_thread(self._write, path, payload)
        logger.debug(f"Saved cache slot {slot} to {path}")

    async def delete(self, slot: str) -> bool:
        path = self._path_for(slot)
        return await asyncio.to_thread(self._unlink, path)

    @staticmethod
    def _read(path: Path) -> Optional[str]:
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    @staticmethod
    def _write(path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, path)

    @staticmethod
    def _unlink(path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
