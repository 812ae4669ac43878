from __future__ import annotations

from functools import lru_cache

from skillhub.configs import configs

from .base import StorageServiceProto
from .local import LocalStorageService


@lru_cache(maxsize=1)
def get_storage_service() -> StorageServiceProto:
    """Return the process-wide storage service for the configured backend."""
    backend = configs.Storage.Backend.lower()
    if backend == "local":
        return LocalStorageService(configs.Storage.LocalRoot)
    raise ValueError(f"Unsupported storage backend: {configs.Storage.Backend}")
