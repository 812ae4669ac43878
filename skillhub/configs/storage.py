from pydantic import BaseModel, Field


class StorageConfig(BaseModel):
    """Blob storage settings"""

    Backend: str = Field(
        default="local",
        description="Blob storage backend (local)",
    )
    LocalRoot: str = Field(
        default="./data/storage",
        description="Root directory for the local filesystem backend",
    )
