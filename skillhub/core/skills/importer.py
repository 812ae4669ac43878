"""
Skill import pipeline.

Every import runs the same stages:
fetch -> detect format -> parse -> compute identifier -> resolve existing
-> create | update | unchanged -> persist.

Identifiers are derived from the source (URL, GitHub repository) so that
re-importing the same source lands on the same record; uploads and
hand-authored skills get a fresh ``user.`` identifier unless the caller
supplies one. Nothing here commits: the API layer owns the transaction.
"""

from __future__ import annotations

import logging
import secrets
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Iterator
from urllib.parse import urlparse
from uuid import UUID

import httpx
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession

from skillhub.configs import configs
from skillhub.core.storage import FileService, StorageServiceProto
from skillhub.models.skill import Skill, SkillCreate, SkillImportStatus, SkillSource, SkillUpdate
from skillhub.repos.file import FileRepository
from skillhub.repos.skill import SkillRepository

from .archive import parse_zip_package
from .errors import (
    SkillArchiveError,
    SkillImportError,
    SkillImportErrorCode,
    SkillManifestError,
)
from .github import (
    GitHubClient,
    GitHubDownloadError,
    GitHubNotFoundError,
    GitHubParseError,
    GitHubRepoInfo,
)
from .marketplace import MarketService
from .parser import SkillManifest, parse_skill_md
from .resource import SkillResourceService
from .sources import GitHubSource, ImportSource, MarketSource, UrlSource, ZipSource

logger = logging.getLogger(__name__)

ZIP_PREFIX = "skills/zip"
ZIP_CONTENT_TYPE = "application/zip"
_ZIP_CONTENT_TYPES = ("application/zip", "application/x-zip-compressed", "application/octet-stream")


class SkillCreateInput(BaseModel):
    """A hand-authored skill."""

    name: str = Field(min_length=1, max_length=255)
    content: str
    description: str = ""
    identifier: str | None = Field(default=None, max_length=255)


@dataclass
class SkillImportResult:
    skill: Skill
    status: SkillImportStatus


@dataclass
class _PreparedSkill:
    """A parsed source, ready to be compared against and written to the store."""

    identifier: str
    name: str
    description: str
    content: str
    manifest: dict[str, Any]
    source: SkillSource
    resources: dict[str, bytes] = field(default_factory=dict)
    package_hash: str | None = None
    archive: bytes | None = None


def generate_user_identifier() -> str:
    return f"user.{secrets.token_urlsafe(9)}"


def url_identifier(url: str) -> str:
    """``url.<host>.<path with '/' as '.' and no extension>``; ``url.<host>.skill`` for an empty path."""
    parsed = urlparse(url)
    host = parsed.hostname or ""
    if parsed.port is not None:
        host = f"{host}:{parsed.port}"
    segments = [s for s in parsed.path.split("/") if s]
    if segments:
        segments[-1] = PurePosixPath(segments[-1]).stem or segments[-1]
    return f"url.{host}.{'.'.join(segments) or 'skill'}"


def _url_fallback_name(url: str) -> str:
    parsed = urlparse(url)
    segments = [s for s in parsed.path.split("/") if s]
    if not segments:
        return parsed.hostname or "skill"
    stem = PurePosixPath(segments[-1]).stem
    if stem.lower() in ("skill", "download") and len(segments) > 1:
        return segments[-2]
    return stem or segments[-1]


def _is_zip_response(url: str, content_type: str) -> bool:
    path = urlparse(url).path
    if path.lower().endswith(".zip") or "download" in path.split("/"):
        return True
    content_type = content_type.lower()
    return any(t in content_type for t in _ZIP_CONTENT_TYPES)


@contextmanager
def _translate_parse_errors() -> Iterator[None]:
    try:
        yield
    except (SkillManifestError, SkillArchiveError) as e:
        raise SkillImportError(f"Invalid skill package: {e}", SkillImportErrorCode.INVALID_PACKAGE) from e


def _resolve_manifest(manifest: SkillManifest, fallback_name: str, **provenance: str) -> dict[str, Any]:
    data = manifest.to_json()
    data["name"] = manifest.name.strip() or fallback_name
    data["description"] = manifest.description or ""
    data.update(provenance)
    return data


class SkillImporter:
    """Imports skills for one user. All lookups and writes are scoped to ``user_id``."""

    def __init__(
        self,
        db: AsyncSession,
        user_id: str,
        *,
        storage: StorageServiceProto | None = None,
        github: GitHubClient | None = None,
        market: MarketService | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.db = db
        self.user_id = user_id
        self.skill_repo = SkillRepository(db, user_id)
        self.file_repo = FileRepository(db)
        self.file_service = FileService(db, storage)
        self.resource_service = SkillResourceService(self.file_service)
        self.github = github or GitHubClient(http_client=http_client)
        self.market = market or MarketService()
        self.http_client = http_client
        self.manifest_filename = configs.Skill.ManifestFilename

    async def import_skill(self, source: ImportSource) -> SkillImportResult:
        """Run the import for whichever kind of source was given."""
        match source:
            case UrlSource(url=url):
                return await self.import_from_url(url)
            case GitHubSource(git_url=git_url, branch=branch):
                return await self.import_from_github(git_url, branch)
            case ZipSource(file_id=file_id, identifier=identifier):
                return await self.import_from_zip(file_id, identifier)
            case MarketSource(identifier=identifier):
                return await self.import_from_market(identifier)
        raise TypeError(f"Unsupported import source: {source!r}")

    async def create_user_skill(self, data: SkillCreateInput) -> Skill:
        """
        Create a hand-authored skill.

        Raises:
            SkillImportError: CONFLICT if the name or the explicit identifier is taken.
        """
        if await self.skill_repo.get_skill_by_name(data.name):
            raise SkillImportError(f'Skill with name "{data.name}" already exists', SkillImportErrorCode.CONFLICT)

        identifier = data.identifier or generate_user_identifier()
        if await self.skill_repo.get_skill_by_identifier(identifier):
            raise SkillImportError(
                f'Skill with identifier "{identifier}" already exists', SkillImportErrorCode.CONFLICT
            )

        skill = await self._create(
            SkillCreate(
                identifier=identifier,
                name=data.name,
                description=data.description,
                content=data.content,
                manifest={"name": data.name, "description": data.description},
                source=SkillSource.USER,
            )
        )
        logger.info(f"Created skill {skill.identifier} ({skill.id}) for user {self.user_id}")
        return skill

    async def import_from_url(self, url: str) -> SkillImportResult:
        """
        Import a SKILL.md document or a skill archive served at ``url``.

        Raises:
            SkillImportError: INVALID_URL, NOT_FOUND, DOWNLOAD_FAILED, INVALID_PACKAGE or CONFLICT.
        """
        parsed_url = urlparse(url.strip())
        try:
            valid = parsed_url.scheme in ("http", "https") and bool(parsed_url.hostname) and parsed_url.port != 0
        except ValueError:  # malformed port
            valid = False
        if not valid:
            raise SkillImportError("Invalid URL format", SkillImportErrorCode.INVALID_URL)
        url = parsed_url.geturl()

        response = await self._fetch(url)
        identifier = url_identifier(url)
        fallback_name = _url_fallback_name(url)

        if _is_zip_response(url, response.headers.get("content-type", "")):
            logger.debug(f"Parsing {url} as a skill archive")
            with _translate_parse_errors():
                package = parse_zip_package(response.content, manifest_filename=self.manifest_filename)
            prepared = _PreparedSkill(
                identifier=identifier,
                name=package.manifest.name.strip() or fallback_name,
                description=package.manifest.description,
                content=package.content,
                manifest=_resolve_manifest(package.manifest, fallback_name, sourceUrl=url),
                source=SkillSource.MARKET,
                resources=package.resources,
                package_hash=package.zip_hash,
                archive=response.content,
            )
        else:
            logger.debug(f"Parsing {url} as a SKILL.md document")
            with _translate_parse_errors():
                document = parse_skill_md(response.text)
            prepared = _PreparedSkill(
                identifier=identifier,
                name=document.manifest.name.strip() or fallback_name,
                description=document.manifest.description,
                content=document.content,
                manifest=_resolve_manifest(document.manifest, fallback_name, sourceUrl=url),
                source=SkillSource.MARKET,
            )

        return await self._persist(prepared, guard_name=False)

    async def import_from_github(self, git_url: str, branch: str | None = None) -> SkillImportResult:
        """
        Import a skill from a GitHub repository, optionally from a sub-directory.

        Raises:
            SkillImportError: INVALID_URL, NOT_FOUND, DOWNLOAD_FAILED, INVALID_PACKAGE or CONFLICT.
        """
        try:
            info = self.github.parse_repo_url(git_url, branch)
        except GitHubParseError as e:
            raise SkillImportError(str(e), SkillImportErrorCode.INVALID_URL) from e
        logger.debug(f"Importing GitHub skill {info.owner}/{info.repo} branch={info.branch} path={info.path}")

        try:
            data = await self.github.download_repo_zip(info)
        except GitHubNotFoundError as e:
            raise SkillImportError(str(e), SkillImportErrorCode.NOT_FOUND) from e
        except GitHubDownloadError as e:
            raise SkillImportError(
                f"Failed to download GitHub repository: {e}", SkillImportErrorCode.DOWNLOAD_FAILED
            ) from e

        with _translate_parse_errors():
            package = parse_zip_package(
                data, base_path=info.path, repack=True, manifest_filename=self.manifest_filename
            )

        fallback_name = self._github_fallback_name(info)
        prepared = _PreparedSkill(
            identifier=self.github.generate_identifier(info),
            name=package.manifest.name.strip() or fallback_name,
            description=package.manifest.description,
            content=package.content,
            manifest=_resolve_manifest(
                package.manifest, fallback_name, repository=info.html_url, sourceUrl=git_url
            ),
            source=SkillSource.MARKET,
            resources=package.resources,
            package_hash=package.zip_hash,
            archive=package.skill_zip,
        )
        return await self._persist(prepared, guard_name=False)

    async def import_from_zip(self, file_id: UUID, identifier: str | None = None) -> SkillImportResult:
        """
        Import a skill archive the user uploaded earlier.

        Raises:
            SkillImportError: FILE_NOT_FOUND, INVALID_PACKAGE or CONFLICT.
        """
        upload = await self.file_repo.get_file_for_user(file_id, self.user_id)
        if not upload:
            raise SkillImportError(f"File not found: {file_id}", SkillImportErrorCode.FILE_NOT_FOUND)

        try:
            data = await self.file_service.read_file_bytes(upload.storage_key)
        except FileNotFoundError as e:
            raise SkillImportError(f"File not found: {file_id}", SkillImportErrorCode.FILE_NOT_FOUND) from e

        with _translate_parse_errors():
            package = parse_zip_package(data, manifest_filename=self.manifest_filename)

        fallback_name = PurePosixPath(upload.original_filename).stem or "skill"
        prepared = _PreparedSkill(
            identifier=identifier or generate_user_identifier(),
            name=package.manifest.name.strip() or fallback_name,
            description=package.manifest.description,
            content=package.content,
            manifest=_resolve_manifest(package.manifest, fallback_name),
            source=SkillSource.USER,
            resources=package.resources,
            package_hash=package.zip_hash,
            archive=data,
        )
        return await self._persist(prepared, guard_name=True)

    async def import_from_market(self, identifier: str) -> SkillImportResult:
        """Resolve a marketplace identifier to its package URL and import that."""
        if not identifier.strip():
            raise SkillImportError("Marketplace identifier must not be empty", SkillImportErrorCode.INVALID_URL)
        url = self.market.get_skill_download_url(identifier.strip())
        logger.debug(f"Resolved marketplace skill {identifier} to {url}")
        return await self.import_from_url(url)

    async def _fetch(self, url: str) -> httpx.Response:
        timeout = configs.Skill.FetchTimeout
        try:
            if self.http_client is not None:
                response = await self.http_client.get(url, timeout=timeout, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            raise SkillImportError(
                f"Failed to fetch URL: {str(e) or e.__class__.__name__}", SkillImportErrorCode.DOWNLOAD_FAILED
            ) from e

        if response.status_code == 404:
            raise SkillImportError(f"Resource not found at {url}", SkillImportErrorCode.NOT_FOUND)
        if response.status_code >= 400:
            raise SkillImportError(
                f"Failed to fetch URL: {response.status_code} {response.reason_phrase}".rstrip(),
                SkillImportErrorCode.DOWNLOAD_FAILED,
            )
        return response

    @staticmethod
    def _github_fallback_name(info: GitHubRepoInfo) -> str:
        if info.path:
            return info.path.rstrip("/").rsplit("/", 1)[-1] or info.repo
        return info.repo

    @staticmethod
    def _is_unchanged(existing: Skill, prepared: _PreparedSkill) -> bool:
        if prepared.package_hash:
            return existing.zip_file_hash == prepared.package_hash
        return existing.zip_file_hash is None and existing.content == prepared.content

    async def _persist(self, prepared: _PreparedSkill, *, guard_name: bool) -> SkillImportResult:
        existing = await self.skill_repo.get_skill_by_identifier(prepared.identifier)

        if existing and self._is_unchanged(existing, prepared):
            logger.info(f"Skill {prepared.identifier} unchanged, skipping update")
            return SkillImportResult(skill=existing, status=SkillImportStatus.UNCHANGED)

        if guard_name:
            clash = await self.skill_repo.get_skill_by_name(
                prepared.name, exclude_skill_id=existing.id if existing else None
            )
            if clash:
                raise SkillImportError(
                    f'Skill with name "{prepared.name}" already exists', SkillImportErrorCode.CONFLICT
                )

        resources: dict[str, dict[str, Any]] | None = None
        if prepared.resources and prepared.package_hash:
            resources = await self.resource_service.store_resources(prepared.package_hash, prepared.resources)

        zip_file_hash: str | None = None
        if prepared.package_hash and prepared.archive is not None:
            await self._store_archive(prepared.package_hash, prepared.archive)
            zip_file_hash = prepared.package_hash

        if existing:
            skill = await self.skill_repo.update_skill(
                existing.id,
                SkillUpdate(
                    name=prepared.name,
                    description=prepared.description,
                    content=prepared.content,
                    manifest=prepared.manifest,
                    resources=resources,
                    zip_file_hash=zip_file_hash,
                ),
            )
            if skill is None:
                raise SkillImportError(f"Skill not found: {prepared.identifier}", SkillImportErrorCode.NOT_FOUND)
            logger.info(f"Updated skill {skill.identifier} ({skill.id})")
            return SkillImportResult(skill=skill, status=SkillImportStatus.UPDATED)

        skill = await self._create(
            SkillCreate(
                identifier=prepared.identifier,
                name=prepared.name,
                description=prepared.description,
                content=prepared.content,
                manifest=prepared.manifest,
                resources=resources,
                zip_file_hash=zip_file_hash,
                source=prepared.source,
            )
        )
        logger.info(f"Created skill {skill.identifier} ({skill.id})")
        return SkillImportResult(skill=skill, status=SkillImportStatus.CREATED)

    async def _store_archive(self, package_hash: str, archive: bytes) -> None:
        key = f"{ZIP_PREFIX}/{package_hash}.zip"
        await self.file_service.upload_buffer(archive, key, ZIP_CONTENT_TYPE)
        await self.file_service.create_global_file(
            file_hash=package_hash,
            file_type=ZIP_CONTENT_TYPE,
            size=len(archive),
            url=key,
            metadata={"dirname": ZIP_PREFIX, "filename": f"{package_hash}.zip", "path": key},
        )
        logger.debug(f"Stored skill archive {key} ({len(archive)} bytes)")

    async def _create(self, data: SkillCreate) -> Skill:
        try:
            return await self.skill_repo.create_skill(data)
        except IntegrityError as e:
            raise SkillImportError(
                f'Skill with identifier "{data.identifier}" already exists', SkillImportErrorCode.CONFLICT
            ) from e


__all__ = [
    "SkillCreateInput",
    "SkillImportResult",
    "SkillImporter",
    "generate_user_identifier",
    "url_identifier",
]
