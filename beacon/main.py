"""FastAPI entry-point exposing agents, collaborations and workflows."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from beacon.api.agents import router as agents_router
from beacon.api.collaborations import router as collaborations_router
from beacon.api.conversations import router as conversations_router
from beacon.api.workflows import router as workflows_router
from beacon.config import config
from beacon.runtime import initialize_runtime, shutdown_runtime

logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    logger.info("Starting Beacon (environment=%s)", config.environment)
    await initialize_runtime()
    yield
    logger.info("Shutting down Beacon")
    await shutdown_runtime()


app = FastAPI(title="Beacon Insight Orchestrator", lifespan=lifespan)
app.include_router(agents_router)
app.include_router(collaborations_router)
app.include_router(conversations_router)
app.include_router(workflows_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "environment": config.environment}
