"""
Skill repository: user-scoped CRUD for skill records.

Follows the standard repository pattern: flush() only, no commits.
Commits happen at the API layer.
"""

from __future__ import annotations

import logging
from typing import Sequence
from uuid import UUID

import sqlalchemy as sa
from sqlmodel import col, or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from skillhub.models.skill import Skill, SkillCreate, SkillSource, SkillUpdate

logger = logging.getLogger(__name__)


class SkillRepository:
    """Every query is filtered by the owning user's id."""

    def __init__(self, db: AsyncSession, user_id: str) -> None:
        self.db = db
        self.user_id = user_id

    def _scoped(self):
        return select(Skill).where(Skill.user_id == self.user_id)

    async def create_skill(self, skill_data: SkillCreate) -> Skill:
        """
        Create a new skill owned by the repository's user.

        Does NOT commit; flushes so the id and timestamps are populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If the identifier is already taken for this user.
        """
        logger.debug(f"Creating skill '{skill_data.identifier}' for user_id={self.user_id}")
        skill_dict = skill_data.model_dump()
        skill_dict["user_id"] = self.user_id
        skill = Skill(**skill_dict)

        self.db.add(skill)
        await self.db.flush()
        await self.db.refresh(skill)
        return skill

    async def get_skill_by_id(self, skill_id: UUID) -> Skill | None:
        """Fetch one of the user's skills by primary key."""
        result = await self.db.exec(self._scoped().where(Skill.id == skill_id))
        return result.first()

    async def get_skill_by_identifier(self, identifier: str) -> Skill | None:
        result = await self.db.exec(self._scoped().where(Skill.identifier == identifier).limit(1))
        return result.first()

    async def get_skill_by_name(self, name: str, *, exclude_skill_id: UUID | None = None) -> Skill | None:
        """Fetch a skill by case-insensitive name, optionally ignoring one record."""
        stmt = self._scoped().where(sa.func.lower(col(Skill.name)) == name.strip().lower())
        if exclude_skill_id:
            stmt = stmt.where(col(Skill.id) != exclude_skill_id)

        result = await self.db.exec(stmt.order_by(col(Skill.created_at).desc()).limit(1))
        return result.first()

    async def list_skills(self) -> Sequence[Skill]:
        """Fetch all of the user's skills, newest first."""
        result = await self.db.exec(self._scoped().order_by(col(Skill.created_at).desc()))
        return result.all()

    async def list_by_source(self, source: SkillSource) -> Sequence[Skill]:
        result = await self.db.exec(
            self._scoped().where(Skill.source == source).order_by(col(Skill.created_at).desc())
        )
        return result.all()

    async def search(self, query: str) -> Sequence[Skill]:
        """Case-insensitive substring search over name, description and identifier."""
        term = query.strip()
        if not term:
            return await self.list_skills()

        pattern = f"%{term}%"
        result = await self.db.exec(
            self._scoped()
            .where(
                or_(
                    col(Skill.name).ilike(pattern),
                    col(Skill.description).ilike(pattern),
                    col(Skill.identifier).ilike(pattern),
                )
            )
            .order_by(col(Skill.name))
        )
        return result.all()

    async def update_skill(self, skill_id: UUID, skill_data: SkillUpdate) -> Skill | None:
        """
        Update an existing skill.

        Does NOT commit. Only explicitly set fields are written; the manifest
        is shallow-merged into the stored one instead of replacing it.

        Returns:
            The updated Skill, or None if not found for this user.
        """
        skill = await self.get_skill_by_id(skill_id)
        if not skill:
            return None

        update_data = skill_data.model_dump(exclude_unset=True)
        if "manifest" in update_data:
            update_data["manifest"] = {**(skill.manifest or {}), **(update_data["manifest"] or {})}

        for key, value in update_data.items():
            if hasattr(skill, key):
                setattr(skill, key, value)

        self.db.add(skill)
        await self.db.flush()
        await self.db.refresh(skill)
        return skill

    async def delete_skill(self, skill_id: UUID) -> bool:
        """
        Delete one of the user's skills.

        Does NOT commit.

        Returns:
            True if deleted, False if not found.
        """
        skill = await self.get_skill_by_id(skill_id)
        if not skill:
            return False

        await self.db.delete(skill)
        await self.db.flush()
        return True
