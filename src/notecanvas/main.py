"""
NoteCanvas Backend Application

FastAPI application entrypoint with async lifespan management.
Handles startup checks (database), provider client construction and
graceful shutdown.

Start locally:
    uvicorn notecanvas.main:app --host 0.0.0.0 --port 8000 --reload
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from notecanvas.api.v1.images import router as images_router
from notecanvas.api.v1.notes import router as notes_router
from notecanvas.api.v1.storage import router as storage_router
from notecanvas.core.config import settings
from notecanvas.core.database import dispose_engine
from notecanvas.core.logging import setup_logging
from notecanvas.services.fallback import FallbackGenerator
from notecanvas.services.generation import ImageGenerationPipeline
from notecanvas.services.notes import NoteService
from notecanvas.services.prompts import PromptBuilder
from notecanvas.services.providers import (
    ImageProvider,
    build_image_client,
    build_prompt_client,
)
from notecanvas.services.storage import FETCH_TIMEOUT_SECONDS, ObjectStorage

# Initialize logging before any log statements
setup_logging()
logger = logging.getLogger(__name__)


async def wait_for_db(retries: int = 10, delay: int = 1) -> bool:
    """
    Wait for PostgreSQL to become available.

    Useful in containerized environments where the database may start
    after the application. Implements retry logic with linear delay.

    Args:
        retries: Maximum connection attempts.
        delay: Seconds between attempts.

    Returns:
        True if connection established, False if all retries exhausted.
    """
    engine = create_async_engine(settings.DATABASE_URL)
    for i in range(retries):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                logger.info("Postgres connection established")
                await engine.dispose()
                return True
        except Exception as e:
            logger.warning("Waiting for Postgres (%d/%d)... Error: %s", i + 1, retries, e)
            await asyncio.sleep(delay)

    await engine.dispose()
    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Validates database connectivity (required, blocks startup on failure)
        - Builds provider clients once and wires the generation pipeline
          into app.state (no credential: basic prompts and fallback images)

    Shutdown:
        - Closes provider clients and disposes the database engine
    """
    logger.info("Starting NoteCanvas...")
    logger.info("Log Level: %s", settings.LOG_LEVEL)

    if not await wait_for_db():
        logger.critical("Could not connect to Postgres. Shutting down.")
        raise RuntimeError("Database connection failed")

    prompt_client = build_prompt_client(settings)
    image_client = build_image_client(settings)
    # Separate client without provider credentials for fetching image URLs
    fetch_client = httpx.AsyncClient(timeout=FETCH_TIMEOUT_SECONDS)

    storage = ObjectStorage(fetch_client, settings.PUBLIC_BASE_URL)
    app.state.storage = storage
    app.state.note_service = NoteService(storage)
    app.state.pipeline = ImageGenerationPipeline(
        prompt_builder=PromptBuilder(
            prompt_client, settings.PROMPT_MODEL, max_chars=settings.PROMPT_MAX_CHARS
        ),
        image_provider=ImageProvider(image_client, settings.IMAGE_MODEL),
        fallback=FallbackGenerator(),
        storage=storage,
        daily_limit=settings.DAILY_GENERATION_LIMIT,
    )
    logger.info(
        "Image generation %s (model=%s, daily limit=%d)",
        "configured" if image_client is not None else "in fallback-only mode",
        settings.IMAGE_MODEL,
        settings.DAILY_GENERATION_LIMIT,
    )

    yield  # Application runs here

    logger.info("Shutting down NoteCanvas...")
    if prompt_client is not None:
        await prompt_client.close()
    if image_client is not None:
        await image_client.aclose()
    await fetch_client.aclose()
    await dispose_engine()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.include_router(notes_router, prefix="/api/v1/notes", tags=["Notes"])
app.include_router(images_router, prefix="/api/v1/images", tags=["Images"])
app.include_router(storage_router, prefix="/api/v1/storage", tags=["Storage"])


@app.get("/health")
async def health_check():
    """
    Health check endpoint for load balancers and orchestrators.

    Returns:
        Static health status plus whether a provider credential is set.
    """
    return {
        "status": "ok",
        "service": "notecanvas",
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "db": "connected",
        "image_generation_configured": settings.provider_api_key is not None,
    }
