# main.py
"""Main application: logging, tables, and vector index warm-up"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from config import settings
from services.logger_config import setup_logging
from database.session import create_tables
from api.endpoints import router
from services.factory import clear_instances, get_vector_store

setup_logging()
logger = logging.getLogger(settings.LOGGER_NAME)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting application...")

    await create_tables()

    # Load persisted chunks before the first query; the embedding model
    # stays lazy and loads on first embed call.
    await get_vector_store().initialize()
    logger.info("Services initialized")
    yield

    logger.info("Shutting down...")
    clear_instances()
    logger.info("Application shutdown complete")

app = FastAPI(
    title=settings.APP_TITLE,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

app.include_router(router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="127.0.0.1",
        port=8000,
        log_level="info"
    )
