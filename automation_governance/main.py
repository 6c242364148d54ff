"""FastAPI application entry point."""

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from automation_governance.db.database import close_database, init_database
from automation_governance.providers import get_registered_providers

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    db_path = os.getenv("DATABASE_PATH", "./data/automation.db")
    await init_database(db_path)

    providers = ", ".join(p.value for p in get_registered_providers())
    logger.info(f"Registered provider adapters: {providers}")

    yield

    # Shutdown
    await close_database()


app = FastAPI(
    title="Automation Governance",
    description="Inventory, sync and classify workflows across automation tools",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware - allow any localhost port for local frontends
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^http://localhost(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers after app is created to avoid circular imports
from automation_governance.api import connections, providers, workflows  # noqa: E402

app.include_router(workflows.router, prefix="/api/v1", tags=["workflows"])
app.include_router(providers.router, prefix="/api/v1")
app.include_router(connections.router, prefix="/api/v1")
