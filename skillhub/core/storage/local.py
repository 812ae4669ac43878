"""Filesystem-backed blob storage."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, BinaryIO

logger = logging.getLogger(__name__)


class LocalStorageService:
    """Stores each object as a file under ``root``; the key is the relative path."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _resolve(self, storage_key: str) -> Path:
        parts = storage_key.split("/")
        if any(part in ("", ".", "..") for part in parts):
            raise ValueError(f"Invalid storage key: {storage_key!r}")
        return self.root.joinpath(*parts)

    async def upload_file(
        self,
        file_data: BinaryIO,
        storage_key: str,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        target = self._resolve(storage_key)
        payload = file_data.read()

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)

        await asyncio.to_thread(_write)
        logger.debug(f"Stored object {storage_key} ({len(payload)} bytes, {content_type})")

    async def download_file(self, storage_key: str, file_data: BinaryIO) -> None:
        target = self._resolve(storage_key)
        if not await asyncio.to_thread(target.is_file):
            raise FileNotFoundError(f"Object not found: {storage_key}")
        file_data.write(await asyncio.to_thread(target.read_bytes))

    async def file_exists(self, storage_key: str) -> bool:
        return await asyncio.to_thread(self._resolve(storage_key).is_file)

    async def delete_files(self, storage_keys: list[str]) -> None:
        def _delete() -> None:
            for key in storage_keys:
                self._resolve(key).unlink(missing_ok=True)

        await asyncio.to_thread(_delete)

    async def list_files(self, prefix: str = "") -> list[dict[str, Any]]:
        def _list() -> list[dict[str, Any]]:
            if not self.root.is_dir():
                return []
            files: list[dict[str, Any]] = []
            for path in sorted(self.root.rglob("*")):
                if not path.is_file():
                    continue
                key = path.relative_to(self.root).as_posix()
                if key.startswith(prefix):
                    files.append({"key": key, "size": path.stat().st_size})
            return files

        return await asyncio.to_thread(_list)
