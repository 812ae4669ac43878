"""
Skill archive (ZIP) parsing.

Locates the canonical SKILL.md inside an archive, separates it from the
skill's resource files, computes a content hash that ignores archive
metadata, and optionally repacks a minimal archive holding only the skill.
"""

from __future__ import annotations

import hashlib
import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from .errors import SkillArchiveError, SkillArchiveErrorKind
from .parser import SKILL_MD_FILENAME, SkillManifest, parse_skill_md

logger = logging.getLogger(__name__)

MAX_SKILL_RESOURCE_FILES = 500
MAX_SKILL_PACKAGE_BYTES = 50 * 1024 * 1024  # 50 MiB uncompressed across document + resources
_REPACK_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_IGNORED_PREFIXES = ("__MACOSX/",)


@dataclass
class ParsedSkillPackage:
    """Result of parsing a skill archive."""

    manifest: SkillManifest
    content: str
    raw: str
    resources: dict[str, bytes] = field(default_factory=dict)
    zip_hash: str = ""
    skill_zip: bytes | None = None


def _normalize_base_path(base_path: str | None) -> str:
    if not base_path:
        return ""
    parts = [p for p in base_path.replace("\\", "/").split("/") if p and p != "."]
    if any(p == ".." for p in parts):
        raise SkillArchiveError(
            f"Invalid base path: {base_path!r}",
            SkillArchiveErrorKind.DOCUMENT_NOT_FOUND,
        )
    return "/".join(parts)


def _is_safe_relative(path: str) -> bool:
    if not path or path.startswith("/"):
        return False
    return all(part not in ("", ".", "..") for part in path.split("/"))


def _detect_root_prefix(names: list[str], manifest_filename: str) -> str:
    """
    Return the archive's logical root ("" or "<folder>/").

    Repository snapshot archives wrap everything in a single top-level folder
    (e.g. ``repo-main/``); that folder is treated as the root.
    """
    if manifest_filename in names:
        return ""
    top_levels = {name.split("/", 1)[0] for name in names}
    if len(top_levels) == 1 and all("/" in name for name in names):
        return f"{top_levels.pop()}/"
    return ""


def compute_package_hash(document: bytes, resources: dict[str, bytes]) -> str:
    """
    Hash a skill's canonical document plus its resources.

    Stable across archives carrying the same skill files regardless of entry
    order, timestamps or unrelated repository content.
    """
    digest = hashlib.sha256()
    digest.update(document)
    for path in sorted(resources):
        digest.update(b"\x00")
        digest.update(path.encode("utf-8"))
        digest.update(b"\x00")
        digest.update(hashlib.sha256(resources[path]).digest())
    return digest.hexdigest()


def repack_skill_zip(document: bytes, resources: dict[str, bytes], manifest_filename: str = SKILL_MD_FILENAME) -> bytes:
    """Build a minimal archive with the document at its root plus resources."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        entries = [(manifest_filename, document)] + [(path, resources[path]) for path in sorted(resources)]
        for name, data in entries:
            info = zipfile.ZipInfo(name, date_time=_REPACK_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            zf.writestr(info, data)
    return buffer.getvalue()


def parse_zip_package(
    data: bytes,
    *,
    base_path: str | None = None,
    repack: bool = False,
    manifest_filename: str = SKILL_MD_FILENAME,
) -> ParsedSkillPackage:
    """
    Parse a skill archive.

    Args:
        data: Raw archive bytes.
        base_path: Directory inside the archive (relative to its root) that
            holds the skill, for imports from a path within a larger repository.
        repack: Also build ``skill_zip``, an archive with only the skill's files.
        manifest_filename: Name of the canonical instruction document.

    Returns:
        ParsedSkillPackage with manifest, body, resources and package hash.

    Raises:
        SkillArchiveError: If the archive is unreadable, too large, or has no
            canonical document at the expected location.
        SkillManifestError: If the document's front-matter is malformed.
    """
    normalized_base = _normalize_base_path(base_path)

    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
        raise SkillArchiveError(f"Archive unreadable or corrupt: {e}", SkillArchiveErrorKind.UNREADABLE) from e

    with zf:
        infos = {
            info.filename: info
            for info in zf.infolist()
            if not info.is_dir() and not info.filename.startswith(_IGNORED_PREFIXES)
        }
        root = _detect_root_prefix(list(infos), manifest_filename)
        skill_dir = f"{root}{normalized_base}/" if normalized_base else root
        document_name = f"{skill_dir}{manifest_filename}"

        if document_name not in infos:
            location = f"{normalized_base}/{manifest_filename}" if normalized_base else manifest_filename
            raise SkillArchiveError(
                f"Canonical document not found: {location}",
                SkillArchiveErrorKind.DOCUMENT_NOT_FOUND,
            )

        total_bytes = 0
        resources: dict[str, bytes] = {}
        try:
            document = zf.read(infos[document_name])
            total_bytes += len(document)

            for name, info in infos.items():
                if name == document_name or not name.startswith(skill_dir):
                    continue
                virtual_path = name[len(skill_dir) :]
                if not _is_safe_relative(virtual_path):
                    logger.warning(f"Skipping archive entry with unsafe path: {name}")
                    continue

                if len(resources) >= MAX_SKILL_RESOURCE_FILES:
                    raise SkillArchiveError(
                        f"Too many resource files (max {MAX_SKILL_RESOURCE_FILES})",
                        SkillArchiveErrorKind.TOO_LARGE,
                    )
                total_bytes += info.file_size
                if total_bytes > MAX_SKILL_PACKAGE_BYTES:
                    raise SkillArchiveError(
                        f"Skill package exceeds max size {MAX_SKILL_PACKAGE_BYTES} bytes",
                        SkillArchiveErrorKind.TOO_LARGE,
                    )
                resources[PurePosixPath(virtual_path).as_posix()] = zf.read(info)
        except (
            zipfile.BadZipFile,
            zipfile.LargeZipFile,
            OSError,
            EOFError,
            RuntimeError,  # encrypted entry
            NotImplementedError,  # unsupported compression method
        ) as e:
            raise SkillArchiveError(f"Archive unreadable or corrupt: {e}", SkillArchiveErrorKind.UNREADABLE) from e

    try:
        text = document.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SkillArchiveError(
            f"Archive unreadable or corrupt: {manifest_filename} is not valid UTF-8",
            SkillArchiveErrorKind.UNREADABLE,
        ) from e

    parsed = parse_skill_md(text)
    zip_hash = compute_package_hash(document, resources)
    logger.debug(f"Parsed skill archive: document={document_name} resources={len(resources)} hash={zip_hash}")

    return ParsedSkillPackage(
        manifest=parsed.manifest,
        content=parsed.content,
        raw=parsed.raw,
        resources=resources,
        zip_hash=zip_hash,
        skill_zip=repack_skill_zip(document, resources, manifest_filename) if repack else None,
    )


__all__ = [
    "MAX_SKILL_PACKAGE_BYTES",
    "MAX_SKILL_RESOURCE_FILES",
    "ParsedSkillPackage",
    "compute_package_hash",
    "parse_zip_package",
    "repack_skill_zip",
]
