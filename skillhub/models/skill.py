from datetime import datetime, timezone
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from pydantic import BaseModel
from sqlalchemy import TIMESTAMP
from sqlmodel import JSON, Column, Field, SQLModel


class SkillSource(StrEnum):
    BUILTIN = "builtin"
    USER = "user"
    MARKET = "market"


class SkillImportStatus(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class SkillResourceMeta(BaseModel):
    """Stored metadata for one resource file, keyed by virtual path in Skill.resources."""

    file_hash: str
    size: int


class SkillBase(SQLModel):
    identifier: str = Field(index=True, max_length=255)
    name: str = Field(index=True, max_length=255)
    description: str = Field(default="", sa_column=Column(sa.Text, nullable=False, default=""))
    content: str = Field(default="", sa_column=Column(sa.Text, nullable=False, default=""))
    # Front-matter manifest; merged (not replaced) on update.
    manifest: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    # Virtual path -> {"file_hash", "size"}; replaced wholesale on update.
    resources: dict[str, dict[str, Any]] | None = Field(default=None, sa_column=Column(JSON))
    # Package hash of the originating archive, used for deduplication.
    zip_file_hash: str | None = Field(default=None, index=True, max_length=64)
    source: SkillSource = Field(
        sa_column=sa.Column(
            sa.Enum(*(v.value for v in SkillSource), name="skillsource", native_enum=True),
            nullable=False,
            index=True,
        )
    )
    user_id: str = Field(index=True)


class Skill(SkillBase, table=True):
    __table_args__ = (sa.UniqueConstraint("user_id", "identifier", name="uq_skill_user_identifier"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False, onupdate=lambda: datetime.now(timezone.utc)),
    )


class SkillCreate(SQLModel):
    identifier: str
    name: str
    description: str = ""
    content: str = ""
    manifest: dict[str, Any] = {}
    resources: dict[str, dict[str, Any]] | None = None
    zip_file_hash: str | None = None
    source: SkillSource = SkillSource.USER


class SkillRead(SkillBase):
    id: UUID
    created_at: datetime
    updated_at: datetime


class SkillUpdate(SQLModel):
    name: str | None = None
    description: str | None = None
    content: str | None = None
    manifest: dict[str, Any] | None = None
    resources: dict[str, dict[str, Any]] | None = None
    zip_file_hash: str | None = None
