"""Blob storage abstraction used for skill archives and resource files."""

from .base import StorageServiceProto
from .file_service import FileService
from .local import LocalStorageService
from .service import get_storage_service

__all__ = ["FileService", "LocalStorageService", "StorageServiceProto", "get_storage_service"]
