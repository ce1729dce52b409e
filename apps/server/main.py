"""FastAPI application entrypoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import categories_router
from app.core.config import settings
from app.db.migrations import run_migrations
from app.db.session import verify_connection


logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    try:
        logger.info("Startup: verifying database connection")
        verify_connection()
        logger.info("Startup: database connection verified")
        app.state.database_url = settings.database_url

        logger.info("Startup: running database migrations")
        run_migrations()
        logger.info("Startup: migrations completed")
    except Exception:
        logger.error("Startup failure", exc_info=True)
        raise

    yield

    logger.info("Shutdown: category service stopped")


logger.info("Creating FastAPI application instance")
app = FastAPI(title="Classifieds categories", lifespan=lifespan)

logger.info("Configuring CORS middleware")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"message": "Server is running"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


logger.info("Registering API routers")
app.include_router(categories_router, prefix=settings.api_prefix)
logger.info("Routers registered; application ready to accept requests")
