"""
The skills visible to one user: builtin skills plus the user's own records.

Builtin skills ship as a directory of ``<name>/SKILL.md`` folders and never
touch the database. The caller composes them with the user's records
explicitly; a user record shadows a builtin with the same identifier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Sequence
from uuid import UUID

from pydantic import BaseModel

from skillhub.models.skill import Skill, SkillSource

from .errors import SkillManifestError
from .parser import SKILL_MD_FILENAME, parse_skill_md

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuiltinSkill:
    identifier: str
    name: str
    description: str
    content: str
    manifest: dict[str, Any] = field(default_factory=dict)


class SkillCatalogEntry(BaseModel):
    identifier: str
    name: str
    description: str
    source: SkillSource
    skill_id: UUID | None = None


def load_builtin_skills(directory: str | Path, manifest_filename: str = SKILL_MD_FILENAME) -> list[BuiltinSkill]:
    """Parse every ``<directory>/<name>/SKILL.md``. Unparseable documents are skipped with a warning."""
    root = Path(directory)
    if not root.is_dir():
        return []

    skills: list[BuiltinSkill] = []
    for document in sorted(root.glob(f"*/{manifest_filename}")):
        folder = document.parent.name
        try:
            parsed = parse_skill_md(document.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, SkillManifestError) as e:
            logger.warning(f"Skipping builtin skill {folder}: {e}")
            continue

        manifest = parsed.manifest.to_json()
        skills.append(
            BuiltinSkill(
                identifier=f"builtin.{folder}",
                name=parsed.manifest.name.strip() or folder,
                description=parsed.manifest.description,
                content=parsed.content,
                manifest=manifest,
            )
        )
    logger.debug(f"Loaded {len(skills)} builtin skills from {root}")
    return skills


class SkillCatalog:
    def __init__(self, entries: Sequence[SkillCatalogEntry]) -> None:
        self.entries = list(entries)

    @classmethod
    def compose(cls, builtin: Iterable[BuiltinSkill], user_skills: Iterable[Skill]) -> "SkillCatalog":
        user_entries = [
            SkillCatalogEntry(
                identifier=skill.identifier,
                name=skill.name,
                description=skill.description,
                source=skill.source,
                skill_id=skill.id,
            )
            for skill in user_skills
        ]
        taken = {entry.identifier for entry in user_entries}
        builtin_entries = [
            SkillCatalogEntry(
                identifier=skill.identifier,
                name=skill.name,
                description=skill.description,
                source=SkillSource.BUILTIN,
            )
            for skill in builtin
            if skill.identifier not in taken
        ]
        return cls(builtin_entries + user_entries)

    def find_by_name(self, name: str) -> SkillCatalogEntry | None:
        wanted = name.strip().lower()
        return next((entry for entry in self.entries if entry.name.lower() == wanted), None)

    def search(self, query: str) -> list[SkillCatalogEntry]:
        term = query.strip().lower()
        if not term:
            return list(self.entries)
        return [
            entry
            for entry in self.entries
            if term in entry.name.lower() or term in entry.description.lower() or term in entry.identifier.lower()
        ]


__all__ = ["BuiltinSkill", "SkillCatalog", "SkillCatalogEntry", "load_builtin_skills"]
