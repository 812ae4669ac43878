"""
Request identity.

The service does not authenticate; it trusts an upstream gateway to put the
caller's user id in the ``X-User-Id`` header and scopes every query by it.
"""

from fastapi import Header, HTTPException, status

from skillhub.common.code import ErrCode

USER_ID_HEADER = "X-User-Id"


async def get_current_user(x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER)) -> str:
    """Return the calling user's id, or 401 when the header is missing."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ErrCode.AUTHENTICATION_REQUIRED.with_messages(f"Missing {USER_ID_HEADER} header").as_dict(),
        )
    return user_id


__all__ = ["USER_ID_HEADER", "get_current_user"]
