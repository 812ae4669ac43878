"""MIME type resolution for skill resource files."""

from __future__ import annotations

import mimetypes
from pathlib import PurePosixPath

DEFAULT_MIME_TYPE = "application/octet-stream"

# Source and config extensions that generic MIME tables miss or classify as binary.
CUSTOM_MIME_TYPES: dict[str, str] = {
    ".clj": "text/x-clojure",
    ".ex": "text/x-elixir",
    ".exs": "text/x-elixir",
    ".go": "text/x-go",
    ".hs": "text/x-haskell",
    ".kt": "text/x-kotlin",
    ".lua": "text/x-lua",
    ".md": "text/markdown",
    ".pl": "text/x-perl",
    ".py": "text/x-python",
    ".r": "text/x-r",
    ".rb": "text/x-ruby",
    ".rs": "text/x-rust",
    ".scala": "text/x-scala",
    ".sh": "application/x-sh",
    ".svelte": "text/x-svelte",
    ".swift": "text/x-swift",
    ".toml": "text/x-toml",
    ".ts": "application/typescript",
    ".vue": "text/x-vue",
    ".yaml": "application/x-yaml",
    ".yml": "application/x-yaml",
}

TEXT_APPLICATION_TYPES = frozenset(
    {
        "application/json",
        "application/xml",
        "application/javascript",
        "application/typescript",
        "application/xhtml+xml",
        "application/x-yaml",
        "application/x-sh",
    }
)


def get_mime_type(path: str) -> str:
    """Resolve a MIME type from a virtual path's extension."""
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in CUSTOM_MIME_TYPES:
        return CUSTOM_MIME_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(path, strict=False)
    return guessed or DEFAULT_MIME_TYPE


def is_text_mime_type(mime_type: str) -> bool:
    if mime_type.startswith("text/"):
        return True
    return mime_type in TEXT_APPLICATION_TYPES


__all__ = ["CUSTOM_MIME_TYPES", "DEFAULT_MIME_TYPE", "get_mime_type", "is_text_mime_type"]
