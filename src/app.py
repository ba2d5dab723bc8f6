"""Main FastAPI application module.

This module initializes the FastAPI application and registers all route handlers.
"""

import logging
from datetime import datetime

import pytz
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from core.logging_config import setup_logging
from config import (
    API_HOST,
    API_PORT,
    CORS_ALLOWED_ORIGINS,
    UPLOADS_DIR,
)
from api.routes import auth, issues, users
from core.bootstrap import bootstrap
from core.database import SessionLocal, engine, init_db
from core.dependencies import AssetHostDep, get_asset_host
from core.error_handlers import register_exception_handlers

# Setup logging
setup_logging()

logger = logging.getLogger(__name__)

# Initialize FastAPI application
app = FastAPI(
    title="VoiceIt API",
    description="Backend API for reporting and tracking civic issues.",
    version="1.0.0",
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Register route handlers
app.include_router(auth.router)
app.include_router(issues.router)
app.include_router(users.router)

# Images stored by the local asset host
UPLOADS_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOADS_DIR)), name="uploads")


@app.on_event("startup")
def startup_tasks() -> None:
    """Create tables, the bootstrap admin and optional sample data."""
    init_db()
    db = SessionLocal()
    try:
        bootstrap(db)
    finally:
        db.close()
    logger.info("Asset host: %s", get_asset_host().name)


@app.get("/", summary="API root", tags=["Info"])
def root() -> dict:
    """API root, returns API info and the main endpoint prefixes."""
    return {
        "name": "VoiceIt API",
        "version": "1.0.0",
        "endpoints": {
            "health": "/api/health",
            "auth": "/api/auth",
            "issues": "/api/issues",
            "users": "/api/users",
        },
        "docs": "/docs",
    }


@app.get("/api/health", summary="Health check", tags=["Health"])
def health(asset_host: AssetHostDep) -> dict:
    """Health check endpoint.

    Returns:
        Dictionary with status "ok", the server time, the database dialect
        and the asset host actually in use.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(pytz.utc).isoformat(),
        "database": engine.dialect.name,
        "asset_host": asset_host.name,
    }


# --- Startup code for direct execution ---
if __name__ == "__main__":
    import uvicorn

    server_url = f"http://{API_HOST}:{API_PORT}"
    print(f"Starting VoiceIt API at {server_url}")
    print(f"API docs: {server_url}/docs")

    uvicorn.run("app:app", host=API_HOST, port=API_PORT, reload=True)
