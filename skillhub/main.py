import logging
import logging.config
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skillhub import __version__
from skillhub.api import root_router
from skillhub.configs import configs
from skillhub.core.logger import LOGGING_CONFIG
from skillhub.infra.database import create_db_and_tables

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logging.config.dictConfig(LOGGING_CONFIG)

    # Create database tables
    await create_db_and_tables()
    logger.info(f"Database engine: {configs.Database.Engine}, storage backend: {configs.Storage.Backend}")

    yield

    from skillhub.infra.database.connection import async_engine

    await async_engine.dispose()


app = FastAPI(
    title=configs.Title,
    description="Skill import pipeline and content-addressed resource store",
    version=__version__,
    lifespan=lifespan,
    docs_url="/skillhub/api/docs",
    redoc_url="/skillhub/api/redoc",
    openapi_url="/skillhub/api/openapi.json",
    redirect_slashes=False,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(root_router)


def main() -> None:
    uvicorn.run(
        "skillhub.main:app",
        host=configs.Host,
        port=configs.Port,
        log_config=LOGGING_CONFIG,
        reload=configs.Debug,
        reload_excludes=["tests"],
    )


if __name__ == "__main__":
    main()
