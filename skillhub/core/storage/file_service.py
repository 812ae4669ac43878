"""
Blob I/O combined with content-addressed file records.

Objects live in the storage backend under their storage key; a GlobalFile row
keyed by sha256 records where the bytes for a given hash are stored.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Any

from sqlmodel.ext.asyncio.session import AsyncSession

from skillhub.models.global_file import GlobalFile, GlobalFileCreate
from skillhub.repos.global_file import GlobalFileRepository

from .base import StorageServiceProto
from .service import get_storage_service

logger = logging.getLogger(__name__)


class FileService:
    def __init__(self, db: AsyncSession, storage: StorageServiceProto | None = None) -> None:
        self.storage = storage or get_storage_service()
        self.global_file_repo = GlobalFileRepository(db)

    async def upload_buffer(self, data: bytes, storage_key: str, content_type: str | None = None) -> None:
        await self.storage.upload_file(
            file_data=BytesIO(data),
            storage_key=storage_key,
            content_type=content_type,
        )

    async def create_global_file(
        self,
        *,
        file_hash: str,
        file_type: str,
        size: int,
        url: str,
        metadata: dict[str, Any] | None = None,
    ) -> GlobalFile:
        """Record where the bytes for ``file_hash`` live. Idempotent on the hash."""
        return await self.global_file_repo.create_if_absent(
            GlobalFileCreate(hash_id=file_hash, file_type=file_type, size=size, url=url, metainfo=metadata)
        )

    async def read_file_bytes(self, storage_key: str) -> bytes:
        """
        Download an object.

        Raises:
            FileNotFoundError: If the object does not exist.
        """
        buffer = BytesIO()
        await self.storage.download_file(storage_key, buffer)
        return buffer.getvalue()

    async def get_global_file(self, file_hash: str) -> GlobalFile | None:
        return await self.global_file_repo.get_by_hash(file_hash)

    async def get_file_bytes_by_hash(self, file_hash: str) -> bytes:
        """
        Download the bytes recorded for a content hash.

        Raises:
            FileNotFoundError: If no record exists for the hash or its object is gone.
        """
        record = await self.global_file_repo.get_by_hash(file_hash)
        if not record:
            raise FileNotFoundError(f"No file recorded for hash {file_hash}")
        logger.debug(f"Reading {file_hash} from {record.url}")
        return await self.read_file_bytes(record.url)
