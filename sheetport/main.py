"""Sheetport — FastAPI application entry point.

Initializes the record store, content-type registry and mapping oracle on
startup and registers API routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sheetport.api import content_types, health, imports
from sheetport.core.config import settings
from sheetport.core.content_types import ContentTypeRegistry
from sheetport.core.mapping_oracle import OllamaMappingOracle
from sheetport.core.record_store import NebulaRecordStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize service connections on startup, close on shutdown."""
    logger.info("Starting Sheetport backend...")

    # Connect the record store and ensure its schema
    store = NebulaRecordStore()
    try:
        store.connect()
        store.ensure_schema()
    except Exception as e:
        logger.error(f"Failed to connect to NebulaGraph: {e}")
    app.state.store = store

    app.state.registry = ContentTypeRegistry()
    logger.info("Content type registry initialized")

    app.state.oracle = OllamaMappingOracle(enabled=settings.ollama_enabled)
    logger.info(f"Mapping oracle: {settings.ollama_model} at {settings.ollama_base_url}")

    logger.info("Sheetport backend ready")
    yield

    # Shutdown
    logger.info("Shutting down Sheetport backend...")
    logger.info(app.state.oracle.budget.summary())
    await app.state.oracle.close()
    app.state.store.close()
    logger.info("Sheetport backend stopped")


app = FastAPI(
    title="Sheetport",
    version="0.1.0",
    description="Spreadsheet-to-content import: column mapping, validation, "
                "value transforms and reference resolution.",
    lifespan=lifespan,
)

app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(content_types.router, prefix="/api", tags=["content-types"])
app.include_router(imports.router, prefix="/api", tags=["imports"])
