from .file import File, FileCreate, FileRead
from .global_file import GlobalFile, GlobalFileCreate
from .skill import (
    Skill,
    SkillCreate,
    SkillImportStatus,
    SkillRead,
    SkillResourceMeta,
    SkillSource,
    SkillUpdate,
)

__all__ = [
    "File",
    "FileCreate",
    "FileRead",
    "GlobalFile",
    "GlobalFileCreate",
    "Skill",
    "SkillCreate",
    "SkillImportStatus",
    "SkillRead",
    "SkillResourceMeta",
    "SkillSource",
    "SkillUpdate",
]
