from __future__ import annotations

from typing import Any, BinaryIO, Protocol, runtime_checkable


@runtime_checkable
class StorageServiceProto(Protocol):
    """Object storage primitives. Keys are '/'-separated and relative."""

    async def upload_file(
        self,
        file_data: BinaryIO,
        storage_key: str,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None: ...

    async def download_file(self, storage_key: str, file_data: BinaryIO) -> None: ...

    async def file_exists(self, storage_key: str) -> bool: ...

    async def delete_files(self, storage_keys: list[str]) -> None: ...

    async def list_files(self, prefix: str = "") -> list[dict[str, Any]]: ...
