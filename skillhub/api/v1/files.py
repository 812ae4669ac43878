"""
File upload handlers.

- POST /v1/files/       — Upload a skill archive (multipart), returns the file record
- GET  /v1/files/{id}   — Get an uploaded file record
"""

import hashlib
import logging
import mimetypes
from io import BytesIO
from pathlib import PurePosixPath
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlmodel.ext.asyncio.session import AsyncSession

from skillhub.common.code import ErrCode, handle_skill_error
from skillhub.core.skills.archive import MAX_SKILL_PACKAGE_BYTES
from skillhub.core.storage import StorageServiceProto, get_storage_service
from skillhub.infra.database import get_session
from skillhub.middleware.auth import get_current_user
from skillhub.models.file import FileCreate, FileRead
from skillhub.repos.file import FileRepository

router = APIRouter(tags=["files"])
logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "uploads"


def _too_large() -> HTTPException:
    max_mb = MAX_SKILL_PACKAGE_BYTES / (1024 * 1024)
    return handle_skill_error(ErrCode.PAYLOAD_TOO_LARGE.with_messages(f"File size exceeds {max_mb:.0f} MiB limit"))


def _safe_filename(filename: str) -> str:
    name = PurePosixPath(filename.replace("\\", "/")).name
    return name if name not in ("", ".", "..") else "upload.zip"


@router.post("/", response_model=FileRead, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user),
    storage: StorageServiceProto = Depends(get_storage_service),
    db: AsyncSession = Depends(get_session),
) -> FileRead:
    """Upload an archive for a later POST /v1/skills/import/zip."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="Filename is required")
    if file.size is not None and file.size > MAX_SKILL_PACKAGE_BYTES:
        raise _too_large()

    file_data = await file.read()
    if not file_data:
        raise HTTPException(status_code=400, detail="File is empty")

    file_size = len(file_data)
    if file_size > MAX_SKILL_PACKAGE_BYTES:
        raise _too_large()

    filename = _safe_filename(file.filename)
    content_type = file.content_type
    if not content_type or content_type == "application/octet-stream":
        content_type, _ = mimetypes.guess_type(filename)
        if not content_type:
            content_type = "application/octet-stream"

    storage_key = f"{UPLOAD_PREFIX}/{uuid4().hex}/{filename}"
    file_hash = hashlib.sha256(file_data).hexdigest()

    try:
        await storage.upload_file(
            file_data=BytesIO(file_data),
            storage_key=storage_key,
            content_type=content_type,
            metadata={"user_id": user_id},
        )
        file_record = await FileRepository(db).create_file(
            FileCreate(
                user_id=user_id,
                storage_key=storage_key,
                original_filename=filename,
                content_type=content_type,
                file_size=file_size,
                file_hash=file_hash,
            )
        )
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Failed to store uploaded file")
        raise HTTPException(status_code=500, detail="Failed to store uploaded file")

    logger.info(f"Stored upload {file_record.id} ({file_size} bytes) for user {user_id}")
    return FileRead.model_validate(file_record)


@router.get("/{file_id}", response_model=FileRead)
async def get_file(
    file_id: UUID,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> FileRead:
    file_record = await FileRepository(db).get_file_for_user(file_id, user_id)
    if not file_record:
        raise HTTPException(status_code=404, detail="File not found")
    return FileRead.model_validate(file_record)
