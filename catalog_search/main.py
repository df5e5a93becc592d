"""
Main FastAPI application.

Catalog search service: unified search over IP assets, creators,
projects and licenses.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from catalog_search.core.config import get_settings
from catalog_search.core.database import create_tables, get_engine
from catalog_search.api.v1 import search
from catalog_search.search.engine import get_search_engine

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Runs on startup and shutdown.
    """
    # Startup
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info("Starting Catalog Search Service")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Adapter timeout: {settings.search_adapter_timeout_seconds}s")

    try:
        create_tables()
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise

    yield

    # Shutdown: let pending analytics writes finish
    await get_search_engine().wait_for_background_tasks()
    logger.info("Shutting down")


app = FastAPI(
    title="Catalog Search Service",
    description="Unified search across IP assets, creators, projects and licenses",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search.router, prefix="/api/v1")


@app.get("/")
def root():
    """Root endpoint with service info."""
    return {
        "service": "Catalog Search Service",
        "version": "0.1.0",
        "entities": ["assets", "creators", "projects", "licenses"],
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Service status and database connectivity."""
    health_status = {
        "status": "healthy",
        "service": "running",
        "database": "unknown"
    }

    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["status"] = "degraded"
        health_status["database"] = f"error: {str(e)}"
        logger.warning(f"Database health check failed: {e}")

    return health_status
