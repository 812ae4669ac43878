"""
Agent skills: instruction packages (SKILL.md + resource files) that users
import from URLs, GitHub repositories, uploaded archives or the marketplace.
"""

from .archive import ParsedSkillPackage, compute_package_hash, parse_zip_package
from .catalog import BuiltinSkill, SkillCatalog, SkillCatalogEntry, load_builtin_skills
from .errors import (
    SkillArchiveError,
    SkillImportError,
    SkillImportErrorCode,
    SkillManifestError,
    SkillResourceError,
    SkillResourceErrorKind,
)
from .importer import SkillCreateInput, SkillImporter, SkillImportResult
from .parser import ParsedSkillMd, SkillManifest, parse_skill_md, require_fields
from .resource import ResourceTreeNode, SkillResourceContent, SkillResourceService
from .sources import GitHubSource, ImportSource, MarketSource, UrlSource, ZipSource

__all__ = [
    "BuiltinSkill",
    "GitHubSource",
    "ImportSource",
    "MarketSource",
    "ParsedSkillMd",
    "ParsedSkillPackage",
    "ResourceTreeNode",
    "SkillArchiveError",
    "SkillCatalog",
    "SkillCatalogEntry",
    "SkillCreateInput",
    "SkillImportError",
    "SkillImportErrorCode",
    "SkillImportResult",
    "SkillImporter",
    "SkillManifest",
    "SkillManifestError",
    "SkillResourceContent",
    "SkillResourceError",
    "SkillResourceErrorKind",
    "SkillResourceService",
    "UrlSource",
    "ZipSource",
    "compute_package_hash",
    "load_builtin_skills",
    "parse_skill_md",
    "parse_zip_package",
    "require_fields",
]
