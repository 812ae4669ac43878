"""
SKILL.md parser.

Splits a SKILL.md document into its YAML front-matter (the manifest) and
the markdown body (the instructions). Required fields are not enforced here;
the importer resolves name/description with fallbacks before persisting.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .errors import SkillManifestError, SkillManifestErrorKind

SKILL_MD_FILENAME = "SKILL.md"

_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?:(?P<yaml>.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL,
)
_FENCE_LINE_RE = re.compile(r"\A---[ \t]*(?:\r?\n|\Z)")

# Manifest keys that are always stored as strings.
_STRING_FIELDS = ("name", "description", "version", "license", "repository", "sourceUrl")


class SkillManifest(BaseModel):
    """Front-matter metadata. Unknown keys are kept as-is."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = ""
    description: str = ""
    version: str | None = None
    license: str | None = None
    repository: str | None = None
    source_url: str | None = Field(default=None, alias="sourceUrl")

    def to_json(self) -> dict[str, Any]:
        """Serialize with front-matter key names, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass
class ParsedSkillMd:
    """Result of parsing a single SKILL.md document."""

    manifest: SkillManifest
    content: str  # Markdown body (after front-matter)
    raw: str  # Original document, unmodified


def _coerce_frontmatter(frontmatter: dict[Any, Any]) -> dict[str, Any]:
    data = {str(key): value for key, value in frontmatter.items()}
    for key in _STRING_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if value is None:
            data[key] = "" if key in ("name", "description") else None
        elif not isinstance(value, str):
            data[key] = str(value)
    return data


def _split_frontmatter(text: str) -> tuple[dict[str, Any] | None, str]:
    """
    Split a document into (front-matter mapping, body).

    Returns (None, text) when the document has no front-matter block.

    Raises:
        SkillManifestError: If a block is opened but malformed.
    """
    match = _FRONTMATTER_RE.match(text)
    if not match:
        if _FENCE_LINE_RE.match(text):
            raise SkillManifestError(
                "Malformed front-matter: block is not closed (missing second ---)",
                SkillManifestErrorKind.MALFORMED_FRONTMATTER,
            )
        return None, text

    raw_yaml = match.group("yaml") or ""
    try:
        loaded = yaml.safe_load(raw_yaml) if raw_yaml.strip() else {}
    except yaml.YAMLError as e:
        raise SkillManifestError(
            f"Malformed front-matter: invalid YAML: {e}",
            SkillManifestErrorKind.MALFORMED_FRONTMATTER,
        ) from e

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise SkillManifestError(
            "Malformed front-matter: YAML must be a mapping",
            SkillManifestErrorKind.MALFORMED_FRONTMATTER,
        )

    return loaded, text[match.end() :]


def parse_skill_md(text: str) -> ParsedSkillMd:
    """
    Parse a SKILL.md document.

    Args:
        text: Full document (optional YAML front-matter + markdown body).

    Returns:
        ParsedSkillMd with the manifest, the stripped body and the raw text.

    Raises:
        SkillManifestError: If the front-matter block is malformed.
    """
    normalized = text[1:] if text.startswith("\ufeff") else text
    frontmatter, body = _split_frontmatter(normalized)

    if frontmatter is None:
        manifest = SkillManifest()
    else:
        manifest = SkillManifest.model_validate(_coerce_frontmatter(frontmatter))

    return ParsedSkillMd(manifest=manifest, content=body.strip(), raw=text)


def require_fields(manifest: SkillManifest) -> SkillManifest:
    """
    Enforce that name and description are present.

    Raises:
        SkillManifestError: With kind MISSING_FIELD naming the first missing field.
    """
    for field_name in ("name", "description"):
        if not getattr(manifest, field_name).strip():
            raise SkillManifestError(
                f"Missing required field: front-matter must include '{field_name}'",
                SkillManifestErrorKind.MISSING_FIELD,
            )
    return manifest


__all__ = [
    "SKILL_MD_FILENAME",
    "ParsedSkillMd",
    "SkillManifest",
    "parse_skill_md",
    "require_fields",
]
