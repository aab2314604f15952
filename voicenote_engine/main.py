"""Main FastAPI application module for Voice Note Engine.

This module initializes the FastAPI application and sets up the core routes and dependencies.
"""

import logging
from contextlib import asynccontextmanager
import uvicorn

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from typing import Dict, Any

from voicenote_engine.core.config import Settings, get_settings
from voicenote_engine.core.logging_config import LOGGING_CONFIG, configure_logging
from voicenote_engine.core import dependencies as core_deps
from voicenote_engine.api.routers import voice
from voicenote_engine.api.routers import auth_google
from voicenote_engine.database.crud import initialize_database

configure_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Voice Note Engine API...")

    try:
        current_settings = get_settings()
        logger.info("Settings loaded.")
    except Exception as e:
        logger.error(f"Failed to load settings on startup: {e}", exc_info=True)
        raise

    core_deps.reset_singletons()

    db_path = core_deps.database_path(current_settings)
    logger.info(f"Ensuring database exists and is initialized at: {db_path}")
    try:
        initialize_database(db_path)
        logger.info("Database initialization check completed.")
    except Exception as e:
        logger.error(f"Failed to initialize database on startup: {e}", exc_info=True)
        raise

    yield

    # Shutdown
    logger.info("Shutting down Voice Note Engine API...")
    core_deps.close_db()
    logger.info("Shutdown complete.")

# Create FastAPI app
app = FastAPI(
    title="Voice Note Engine API",
    description="API for turning voice notes into categorized items and calendar events.",
    version="0.1.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(voice.router, prefix="/api/v1", tags=["Voice Notes"])
app.include_router(auth_google.router, prefix="/api/v1/integrations/google-calendar", tags=["Google Calendar"])
app.include_router(auth_google.callback_router, tags=["Google Authentication"])

@app.get("/health", response_model=Dict[str, Any])
async def health_check(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """Health check endpoint to verify the API is running.

    Returns:
        Dict[str, Any]: Health status information
    """
    return {
        "status": "healthy",
        "version": app.version,
        "environment": settings.environment,
    }

@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint that returns basic API information.

    Returns:
        Dict[str, str]: Basic API information
    """
    return {
        "message": "Welcome to Voice Note Engine API",
        "version": app.version,
    }

if __name__ == "__main__":
    settings = get_settings()

    logger.info(f"Starting Uvicorn server on {settings.api_host}:{settings.api_port} with reload={settings.api_reload}")

    uvicorn.run(
        "voicenote_engine.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_config=LOGGING_CONFIG,
        log_level=settings.api_log_level.lower()
    )
