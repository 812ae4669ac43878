"""
Skills API Handlers.

Endpoints for skill records, imports and resource reads:
- POST   /v1/skills/                          — Create a hand-authored skill
- POST   /v1/skills/parse                     — Validate a SKILL.md (preview, no persist)
- GET    /v1/skills/                          — List user's skills (optionally by source)
- GET    /v1/skills/catalog                   — Builtin skills + user's skills
- GET    /v1/skills/search?q=                 — Search user's skills
- GET    /v1/skills/by-identifier/{identifier} — Get skill by identifier
- GET    /v1/skills/by-name?name=             — Get skill by name
- GET    /v1/skills/{id}                      — Get skill details
- PATCH  /v1/skills/{id}                      — Update skill
- DELETE /v1/skills/{id}                      — Delete skill
- GET    /v1/skills/{id}/zip                  — Download the skill's package archive
- POST   /v1/skills/import/url                — Import from a URL (SKILL.md or archive)
- POST   /v1/skills/import/github             — Import from a GitHub repository
- POST   /v1/skills/import/zip                — Import an uploaded archive
- POST   /v1/skills/import/market             — Import from the marketplace
- GET    /v1/skills/{id}/resources            — Resource tree
- GET    /v1/skills/{id}/resources/content    — Read one resource by virtual path
"""

import logging
from functools import lru_cache
from typing import Any, Awaitable
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from skillhub.common.code import ErrCode, handle_skill_error
from skillhub.configs import configs
from skillhub.core.skills import (
    BuiltinSkill,
    ResourceTreeNode,
    SkillCatalog,
    SkillCatalogEntry,
    SkillCreateInput,
    SkillImporter,
    SkillImportError,
    SkillImportErrorCode,
    SkillImportResult,
    SkillManifestError,
    SkillResourceContent,
    SkillResourceError,
    SkillResourceErrorKind,
    SkillResourceService,
    load_builtin_skills,
    parse_skill_md,
    require_fields,
)
from skillhub.core.storage import FileService, StorageServiceProto, get_storage_service
from skillhub.infra.database import get_session
from skillhub.middleware.auth import get_current_user
from skillhub.models.skill import Skill, SkillImportStatus, SkillRead, SkillSource, SkillUpdate
from skillhub.repos.skill import SkillRepository

router = APIRouter(tags=["skills"])
logger = logging.getLogger(__name__)

_IMPORT_ERR_CODES: dict[SkillImportErrorCode, ErrCode] = {
    SkillImportErrorCode.INVALID_URL: ErrCode.IMPORT_INVALID_URL,
    SkillImportErrorCode.NOT_FOUND: ErrCode.IMPORT_SOURCE_NOT_FOUND,
    SkillImportErrorCode.DOWNLOAD_FAILED: ErrCode.IMPORT_DOWNLOAD_FAILED,
    SkillImportErrorCode.CONFLICT: ErrCode.IMPORT_CONFLICT,
    SkillImportErrorCode.FILE_NOT_FOUND: ErrCode.IMPORT_FILE_NOT_FOUND,
    SkillImportErrorCode.INVALID_PACKAGE: ErrCode.IMPORT_INVALID_PACKAGE,
}


class SkillParseRequest(BaseModel):
    """Request body for SKILL.md parse/validation."""

    skill_md: str


class SkillParseResponse(BaseModel):
    """Response from SKILL.md parse/validation."""

    valid: bool
    name: str | None = None
    description: str | None = None
    manifest: dict[str, Any] | None = None
    error: str | None = None


class SkillUpdateRequest(BaseModel):
    """Request payload for updating a skill."""

    name: str | None = None
    description: str | None = None
    content: str | None = None
    manifest: dict[str, Any] | None = None


class ImportUrlRequest(BaseModel):
    url: str


class ImportGitHubRequest(BaseModel):
    git_url: str
    branch: str | None = None


class ImportZipRequest(BaseModel):
    file_id: UUID
    identifier: str | None = None


class ImportMarketRequest(BaseModel):
    identifier: str


class SkillImportResponse(BaseModel):
    skill: SkillRead
    status: SkillImportStatus


# --- Dependencies ---


def get_skill_importer(
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    storage: StorageServiceProto = Depends(get_storage_service),
) -> SkillImporter:
    return SkillImporter(db, user_id, storage=storage)


@lru_cache(maxsize=1)
def _load_builtin_skills() -> tuple[BuiltinSkill, ...]:
    if not configs.Skill.BuiltinDir:
        return ()
    return tuple(load_builtin_skills(configs.Skill.BuiltinDir, configs.Skill.ManifestFilename))


def get_builtin_skills() -> list[BuiltinSkill]:
    return list(_load_builtin_skills())


def _skill_not_found() -> HTTPException:
    return handle_skill_error(ErrCode.SKILL_NOT_FOUND.with_messages("Skill not found"))


def _import_error(error: SkillImportError) -> HTTPException:
    code = _IMPORT_ERR_CODES.get(error.code, ErrCode.INVALID_REQUEST)
    return handle_skill_error(code.with_messages(error.message))


async def _get_owned_skill(db: AsyncSession, user_id: str, skill_id: UUID) -> Skill:
    skill = await SkillRepository(db, user_id).get_skill_by_id(skill_id)
    if not skill:
        raise _skill_not_found()
    return skill


async def _run_import(db: AsyncSession, operation: Awaitable[SkillImportResult]) -> SkillImportResponse:
    """Await an import, then commit; roll back and translate errors on failure."""
    try:
        result = await operation
        await db.commit()
    except SkillImportError as e:
        await db.rollback()
        logger.info(f"Skill import rejected: {e.code}: {e.message}")
        raise _import_error(e)
    except Exception:
        await db.rollback()
        logger.exception("Skill import failed")
        raise HTTPException(status_code=500, detail="Failed to import skill")

    return SkillImportResponse(skill=SkillRead.model_validate(result.skill), status=result.status)


# --- Skill records ---


@router.post("/parse", response_model=SkillParseResponse)
async def parse_skill(
    body: SkillParseRequest,
    user_id: str = Depends(get_current_user),
) -> SkillParseResponse:
    """
    Validate a SKILL.md without persisting. Returns parsed metadata or error.
    """
    _ = user_id  # identity gate
    try:
        parsed = parse_skill_md(body.skill_md)
        require_fields(parsed.manifest)
    except SkillManifestError as e:
        return SkillParseResponse(valid=False, error=str(e))

    return SkillParseResponse(
        valid=True,
        name=parsed.manifest.name,
        description=parsed.manifest.description,
        manifest=parsed.manifest.to_json(),
    )


@router.post("/", response_model=SkillRead, status_code=status.HTTP_201_CREATED)
async def create_skill(
    body: SkillCreateInput,
    importer: SkillImporter = Depends(get_skill_importer),
    db: AsyncSession = Depends(get_session),
) -> SkillRead:
    """Create a hand-authored skill for the current user."""
    try:
        skill = await importer.create_user_skill(body)
        await db.commit()
    except SkillImportError as e:
        await db.rollback()
        raise _import_error(e)
    except Exception:
        await db.rollback()
        logger.exception("Failed to create skill")
        raise HTTPException(status_code=500, detail="Failed to create skill")

    return SkillRead.model_validate(skill)


@router.get("/", response_model=list[SkillRead])
async def list_skills(
    source: SkillSource | None = Query(default=None),
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[SkillRead]:
    """List the current user's skills, newest first."""
    repo = SkillRepository(db, user_id)
    skills = await repo.list_by_source(source) if source else await repo.list_skills()
    return [SkillRead.model_validate(s) for s in skills]


@router.get("/catalog", response_model=list[SkillCatalogEntry])
async def get_catalog(
    q: str | None = Query(default=None),
    user_id: str = Depends(get_current_user),
    builtin: list[BuiltinSkill] = Depends(get_builtin_skills),
    db: AsyncSession = Depends(get_session),
) -> list[SkillCatalogEntry]:
    """All skills visible to the current user: builtin ones plus their own."""
    user_skills = await SkillRepository(db, user_id).list_skills()
    catalog = SkillCatalog.compose(builtin, user_skills)
    return catalog.search(q) if q else catalog.entries


@router.get("/search", response_model=list[SkillRead])
async def search_skills(
    q: str = Query(default=""),
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[SkillRead]:
    skills = await SkillRepository(db, user_id).search(q)
    return [SkillRead.model_validate(s) for s in skills]


@router.get("/by-identifier/{identifier}", response_model=SkillRead)
async def get_skill_by_identifier(
    identifier: str,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SkillRead:
    skill = await SkillRepository(db, user_id).get_skill_by_identifier(identifier)
    if not skill:
        raise _skill_not_found()
    return SkillRead.model_validate(skill)


@router.get("/by-name", response_model=SkillRead)
async def get_skill_by_name(
    name: str = Query(min_length=1),
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SkillRead:
    skill = await SkillRepository(db, user_id).get_skill_by_name(name)
    if not skill:
        raise _skill_not_found()
    return SkillRead.model_validate(skill)


# --- Imports ---


@router.post("/import/url", response_model=SkillImportResponse)
async def import_from_url(
    body: ImportUrlRequest,
    importer: SkillImporter = Depends(get_skill_importer),
    db: AsyncSession = Depends(get_session),
) -> SkillImportResponse:
    """Import a SKILL.md document or skill archive from a URL."""
    return await _run_import(db, importer.import_from_url(body.url))


@router.post("/import/github", response_model=SkillImportResponse)
async def import_from_github(
    body: ImportGitHubRequest,
    importer: SkillImporter = Depends(get_skill_importer),
    db: AsyncSession = Depends(get_session),
) -> SkillImportResponse:
    """Import a skill from a GitHub repository (optionally a sub-directory)."""
    return await _run_import(db, importer.import_from_github(body.git_url, body.branch))


@router.post("/import/zip", response_model=SkillImportResponse)
async def import_from_zip(
    body: ImportZipRequest,
    importer: SkillImporter = Depends(get_skill_importer),
    db: AsyncSession = Depends(get_session),
) -> SkillImportResponse:
    """Import an archive previously uploaded through POST /files/."""
    return await _run_import(db, importer.import_from_zip(body.file_id, body.identifier))


@router.post("/import/market", response_model=SkillImportResponse)
async def import_from_market(
    body: ImportMarketRequest,
    importer: SkillImporter = Depends(get_skill_importer),
    db: AsyncSession = Depends(get_session),
) -> SkillImportResponse:
    return await _run_import(db, importer.import_from_market(body.identifier))


# --- Single skill ---


@router.get("/{skill_id}", response_model=SkillRead)
async def get_skill(
    skill_id: UUID,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SkillRead:
    """Get a specific skill by ID."""
    return SkillRead.model_validate(await _get_owned_skill(db, user_id, skill_id))


@router.patch("/{skill_id}", response_model=SkillRead)
async def update_skill(
    skill_id: UUID,
    body: SkillUpdateRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SkillRead:
    """
    Update a skill owned by the current user.

    The manifest is merged into the stored one; name and description
    changes are mirrored into it.
    """
    repo = SkillRepository(db, user_id)
    skill = await _get_owned_skill(db, user_id, skill_id)

    fields_set = body.model_fields_set
    for field_name in ("name", "description", "content"):
        if field_name in fields_set and getattr(body, field_name) is None:
            raise HTTPException(status_code=422, detail=f"{field_name} cannot be null")

    if "name" in fields_set and body.name:
        clash = await repo.get_skill_by_name(body.name, exclude_skill_id=skill.id)
        if clash:
            raise handle_skill_error(
                ErrCode.IMPORT_CONFLICT.with_messages(f'Skill with name "{body.name}" already exists')
            )

    update_data = body.model_dump(exclude_unset=True)
    manifest_patch = dict(body.manifest or {})
    if "name" in fields_set:
        manifest_patch["name"] = body.name
    if "description" in fields_set:
        manifest_patch["description"] = body.description
    if manifest_patch:
        update_data["manifest"] = manifest_patch

    try:
        updated = await repo.update_skill(skill.id, SkillUpdate(**update_data))
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Failed to update skill")
        raise HTTPException(status_code=500, detail="Failed to update skill")

    if not updated:
        raise _skill_not_found()
    return SkillRead.model_validate(updated)


@router.delete("/{skill_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_skill(
    skill_id: UUID,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Delete a skill. Stored resource blobs stay: they are shared by content hash."""
    deleted = await SkillRepository(db, user_id).delete_skill(skill_id)
    if not deleted:
        raise _skill_not_found()
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{skill_id}/zip")
async def download_skill_zip(
    skill_id: UUID,
    user_id: str = Depends(get_current_user),
    storage: StorageServiceProto = Depends(get_storage_service),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Download the package archive a skill was imported from."""
    skill = await _get_owned_skill(db, user_id, skill_id)
    if not skill.zip_file_hash:
        raise handle_skill_error(ErrCode.SKILL_PACKAGE_NOT_FOUND.with_messages("Skill has no package archive"))

    try:
        data = await FileService(db, storage).get_file_bytes_by_hash(skill.zip_file_hash)
    except FileNotFoundError as e:
        raise handle_skill_error(ErrCode.SKILL_PACKAGE_NOT_FOUND.with_errors(e))

    filename = quote(f"{skill.identifier}.zip")
    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{filename}"},
    )


# --- Resources ---


@router.get("/{skill_id}/resources", response_model=list[ResourceTreeNode], response_model_exclude_none=True)
async def list_skill_resources(
    skill_id: UUID,
    include_content: bool = Query(default=False),
    user_id: str = Depends(get_current_user),
    storage: StorageServiceProto = Depends(get_storage_service),
    db: AsyncSession = Depends(get_session),
) -> list[ResourceTreeNode]:
    """Resource files as a directory tree; text contents inlined on request."""
    skill = await _get_owned_skill(db, user_id, skill_id)
    if not skill.resources:
        return []
    service = SkillResourceService(FileService(db, storage))
    return await service.list_resources(skill.resources, include_content=include_content)


@router.get("/{skill_id}/resources/content", response_model=SkillResourceContent)
async def read_skill_resource(
    skill_id: UUID,
    path: str = Query(min_length=1),
    user_id: str = Depends(get_current_user),
    storage: StorageServiceProto = Depends(get_storage_service),
    db: AsyncSession = Depends(get_session),
) -> SkillResourceContent:
    """Read one resource by its exact virtual path."""
    skill = await _get_owned_skill(db, user_id, skill_id)
    service = SkillResourceService(FileService(db, storage))
    try:
        return await service.read_resource(skill.resources or {}, path)
    except SkillResourceError as e:
        code = (
            ErrCode.RESOURCE_INVALID_PATH
            if e.kind == SkillResourceErrorKind.INVALID_PATH
            else ErrCode.RESOURCE_NOT_FOUND
        )
        raise handle_skill_error(code.with_messages(e.message))


__all__ = ["router", "get_builtin_skills", "get_skill_importer"]
