from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import TIMESTAMP
from sqlmodel import Column, Field, SQLModel


class FileBase(SQLModel):
    user_id: str = Field(index=True)
    storage_key: str = Field(index=True, max_length=1024)
    original_filename: str = Field(max_length=512)
    content_type: str | None = Field(default=None, max_length=255)
    file_size: int = Field(default=0)
    file_hash: str | None = Field(default=None, index=True, max_length=64)


class File(FileBase, table=True):
    """A file uploaded by a user (e.g. a skill archive awaiting import)."""

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False),
    )


class FileCreate(FileBase):
    pass


class FileRead(FileBase):
    id: UUID
    created_at: datetime
