import logging

from sqlmodel.ext.asyncio.session import AsyncSession

from skillhub.models.global_file import GlobalFile, GlobalFileCreate

logger = logging.getLogger(__name__)


class GlobalFileRepository:
    """Content-addressed file records, keyed by sha256 and shared across users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_hash(self, file_hash: str) -> GlobalFile | None:
        return await self.db.get(GlobalFile, file_hash)

    async def create_if_absent(self, file_data: GlobalFileCreate) -> GlobalFile:
        """
        Create the record for ``file_data.hash_id`` unless one exists.

        Does NOT commit. An existing record is returned untouched.
        """
        existing = await self.get_by_hash(file_data.hash_id)
        if existing:
            logger.debug(f"Global file {file_data.hash_id} already recorded")
            return existing

        record = GlobalFile.model_validate(file_data)
        self.db.add(record)
        await self.db.flush()
        return record
