"""Error codes returned by the API layer.

Codes are grouped by thousands:
- 1xxx generic request errors
- 4xxx skill import errors
- 5xxx skill record and resource errors
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from fastapi import HTTPException


class ErrCode(IntEnum):
    # Generic
    UNKNOWN_ERROR = 1000
    INTERNAL_SERVER_ERROR = 1001
    INVALID_REQUEST = 1002
    AUTHENTICATION_REQUIRED = 1003
    PAYLOAD_TOO_LARGE = 1004

    # Import pipeline
    IMPORT_INVALID_URL = 4000
    IMPORT_SOURCE_NOT_FOUND = 4001
    IMPORT_DOWNLOAD_FAILED = 4002
    IMPORT_CONFLICT = 4003
    IMPORT_FILE_NOT_FOUND = 4004
    IMPORT_INVALID_PACKAGE = 4005

    # Skills and resources
    SKILL_NOT_FOUND = 5000
    SKILL_PACKAGE_NOT_FOUND = 5001
    RESOURCE_NOT_FOUND = 5002
    RESOURCE_INVALID_PATH = 5003

    def with_messages(self, *messages: str) -> "ErrCodeError":
        return ErrCodeError(self, messages)

    def with_errors(self, *errors: BaseException) -> "ErrCodeError":
        return ErrCodeError(self, tuple(str(err) for err in errors if err))


class ErrCodeError(Exception):
    """An error code carrying user-facing messages."""

    def __init__(self, code: ErrCode, messages: tuple[str, ...] = ()) -> None:
        self.code = code
        self.messages = tuple(msg for msg in messages if msg)
        super().__init__(self._format())

    def _format(self) -> str:
        head = f"[{self.code.name}({self.code.value})]"
        if not self.messages:
            return head
        return f"{head} {'; '.join(self.messages)}"

    def as_dict(self) -> dict[str, Any]:
        if not self.messages:
            return {"code": self.code.value, "msg": self.code.name.replace("_", " ").title(), "info": []}
        primary, *rest = self.messages
        body: dict[str, Any] = {"code": self.code.value, "msg": primary}
        if rest:
            body["info"] = rest
        return body


_STATUS_MAP: dict[ErrCode, int] = {
    ErrCode.INVALID_REQUEST: 400,
    ErrCode.AUTHENTICATION_REQUIRED: 401,
    ErrCode.PAYLOAD_TOO_LARGE: 413,
    ErrCode.IMPORT_INVALID_URL: 400,
    ErrCode.IMPORT_INVALID_PACKAGE: 400,
    ErrCode.IMPORT_SOURCE_NOT_FOUND: 404,
    ErrCode.IMPORT_FILE_NOT_FOUND: 404,
    ErrCode.IMPORT_CONFLICT: 409,
    ErrCode.IMPORT_DOWNLOAD_FAILED: 502,
    ErrCode.SKILL_NOT_FOUND: 404,
    ErrCode.SKILL_PACKAGE_NOT_FOUND: 404,
    ErrCode.RESOURCE_NOT_FOUND: 404,
    ErrCode.RESOURCE_INVALID_PATH: 400,
}


def handle_skill_error(error: ErrCodeError) -> HTTPException:
    """Translate an ErrCodeError into an HTTPException (unmapped codes are 500)."""
    status_code = _STATUS_MAP.get(error.code, 500)
    return HTTPException(status_code=status_code, detail=error.as_dict())
