"""Machine-readable error codes for the HTTP surface."""

from .error_code import ErrCode, ErrCodeError, handle_skill_error

__all__ = ["ErrCode", "ErrCodeError", "handle_skill_error"]
