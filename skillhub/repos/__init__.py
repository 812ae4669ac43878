from .file import FileRepository
from .global_file import GlobalFileRepository
from .skill import SkillRepository

__all__ = [
    "FileRepository",
    "GlobalFileRepository",
    "SkillRepository",
]
