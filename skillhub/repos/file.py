import logging
from uuid import UUID

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from skillhub.models.file import File, FileCreate

logger = logging.getLogger(__name__)


class FileRepository:
    """Records for archives users upload ahead of a zip import."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_file(self, file_data: FileCreate) -> File:
        """
        Record an uploaded object. Flushes so ``id`` and ``created_at`` are set; does NOT commit.
        """
        logger.debug(f"Recording upload {file_data.storage_key} ({file_data.file_size} bytes)")
        record = File.model_validate(file_data)
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def get_file_for_user(self, file_id: UUID, user_id: str) -> File | None:
        """Return the upload only when ``user_id`` owns it."""
        result = await self.db.exec(select(File).where(File.id == file_id, File.user_id == user_id))
        return result.first()
