"""Exceptions raised by the skill import pipeline and resource store."""

from __future__ import annotations

from enum import StrEnum


class SkillImportErrorCode(StrEnum):
    """Kinds of import failure surfaced to callers."""

    INVALID_URL = "INVALID_URL"
    NOT_FOUND = "NOT_FOUND"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    CONFLICT = "CONFLICT"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    INVALID_PACKAGE = "INVALID_PACKAGE"


class SkillImportError(Exception):
    """Raised by SkillImporter; the only exception type an import leaks."""

    def __init__(self, message: str, code: SkillImportErrorCode) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __repr__(self) -> str:
        return f"SkillImportError(code={self.code.value!r}, message={self.message!r})"


class SkillManifestErrorKind(StrEnum):
    MALFORMED_FRONTMATTER = "malformed_frontmatter"
    MISSING_FIELD = "missing_field"


class SkillManifestError(ValueError):
    """Raised when a SKILL.md front-matter block cannot be used."""

    def __init__(self, message: str, kind: SkillManifestErrorKind) -> None:
        super().__init__(message)
        self.kind = kind


class SkillArchiveErrorKind(StrEnum):
    DOCUMENT_NOT_FOUND = "document_not_found"
    UNREADABLE = "unreadable"
    TOO_LARGE = "too_large"


class SkillArchiveError(ValueError):
    """Raised when a skill archive cannot be turned into a package."""

    def __init__(self, message: str, kind: SkillArchiveErrorKind) -> None:
        super().__init__(message)
        self.kind = kind


class SkillResourceErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    INVALID_PATH = "invalid_path"


class SkillResourceError(LookupError):
    """Raised when a virtual path cannot be resolved in a resource map."""

    def __init__(self, message: str, kind: SkillResourceErrorKind = SkillResourceErrorKind.NOT_FOUND) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind

    def __str__(self) -> str:
        return self.message


__all__ = [
    "SkillArchiveError",
    "SkillArchiveErrorKind",
    "SkillImportError",
    "SkillImportErrorCode",
    "SkillManifestError",
    "SkillManifestErrorKind",
    "SkillResourceError",
    "SkillResourceErrorKind",
]
