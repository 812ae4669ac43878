from fastapi import APIRouter

from .files import router as files_router
from .skills import router as skills_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(skills_router, prefix="/skills")
v1_router.include_router(files_router, prefix="/files")

__all__ = ["v1_router"]
