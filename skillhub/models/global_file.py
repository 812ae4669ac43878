from datetime import datetime, timezone
from typing import Any

from sqlalchemy import TIMESTAMP
from sqlmodel import JSON, Column, Field, SQLModel


class GlobalFileBase(SQLModel):
    file_type: str = Field(max_length=255)
    size: int = Field(default=0)
    # Storage key of the object
    url: str = Field(max_length=1024)
    # {dirname, filename, path}
    metainfo: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))


class GlobalFile(GlobalFileBase, table=True):
    """Content-addressed file record: one row per distinct sha256."""

    hash_id: str = Field(primary_key=True, max_length=64)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False),
    )


class GlobalFileCreate(GlobalFileBase):
    hash_id: str
