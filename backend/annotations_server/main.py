"""FastAPI application entry point."""

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from annotations_server import __version__
from annotations_server.hub import AnnotationHub
from annotations_server.mcp.tools import AnnotationTools

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = Path.home() / ".annotations-server" / "annotations.json"
DEFAULT_CORS_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    data_path = os.getenv("ANNOTATIONS_DATA_PATH") or str(DEFAULT_DATA_PATH)
    queue_size = int(os.getenv("ANNOTATIONS_WRITE_QUEUE_SIZE", "0"))

    hub = AnnotationHub(Path(data_path).expanduser(), queue_maxsize=queue_size)
    await hub.open()
    app.state.hub = hub
    app.state.tools = AnnotationTools(hub)
    logger.info(f"Annotation store ready at {hub.store.path}")

    yield

    # Shutdown
    await hub.close()
    logger.info("Annotation store closed")


app = FastAPI(
    title="Annotations Server",
    description="Durable store and agent tools for visual page annotations",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware - the capture client runs on arbitrary local dev ports
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=os.getenv("ANNOTATIONS_CORS_ORIGIN_REGEX", DEFAULT_CORS_ORIGIN_REGEX),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


# Import and include routers after app is created to avoid circular imports
from annotations_server.api import annotations, tools  # noqa: E402

app.include_router(annotations.router, prefix="/api", tags=["annotations"])
app.include_router(tools.router, prefix="/api", tags=["tools"])
