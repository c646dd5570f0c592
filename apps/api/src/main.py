"""
Atelier API - FastAPI Backend

REST API for the Atelier asset manager: characters, LoRA library,
wildcards and prompt tools.
"""

# IMPORTANT: Set up paths BEFORE any other imports
import sys
from pathlib import Path

# Add project root to Python path
# This file is at: <root>/apps/api/src/main.py
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import logging
import traceback
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse

from .routers import system
from src.store.api import create_store_routers
from .core.config import settings

# Configure logging - INFO level for normal operation
# Use ATELIER_LOG_LEVEL=DEBUG env var for verbose output
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)


class ImageEndpointFilter(logging.Filter):
    """Filter out noisy image requests from access logs."""
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if "/api/loras/image" in message:
            return False
        if "/uploads/" in message:
            return False
        return True


# Apply filter to uvicorn access logs only
logging.getLogger("uvicorn.access").addFilter(ImageEndpointFilter())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup information."""
    logger.info("=" * 50)
    logger.info(f"  ATELIER API v{system.VERSION}")
    logger.info("=" * 50)
    logger.info(f"  Data path: {settings.data_path}")
    logger.info("=" * 50)
    yield


# Create FastAPI app
app = FastAPI(
    title="Atelier API",
    description="Characters, LoRA library, wildcards and prompt tools for AI image generation.",
    version=system.VERSION,
    lifespan=lifespan,
)


# Global exception handler - logs ALL errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all exceptions and log them with full traceback."""
    error_msg = str(exc)
    tb = traceback.format_exc()

    logger.error("=" * 60)
    logger.error(f"UNHANDLED EXCEPTION: {error_msg}")
    logger.error(f"URL: {request.url}")
    logger.error(f"Method: {request.method}")
    logger.error(f"Traceback:\n{tb}")
    logger.error("=" * 60)

    return JSONResponse(
        status_code=500,
        content={
            "detail": error_msg,
            "traceback": tb.splitlines()[-5:] if tb else []
        }
    )

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# API Routes
# =============================================================================

app.include_router(system.health_router, prefix="/api", tags=["System"])
app.include_router(system.router, prefix="/api/system", tags=["System"])
app.include_router(system.config_router, prefix="/api/config", tags=["Config"])

for prefix, router in create_store_routers():
    app.include_router(router, prefix=f"/api{prefix}")

# Serve uploaded images from <data>/uploads
uploads_path = settings.uploads_path
uploads_path.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(uploads_path)), name="uploads")


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": f"Atelier API v{system.VERSION}", "version": system.VERSION}
