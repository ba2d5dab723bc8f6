"""Configuration module for the VoiceIt backend.

This module provides centralized configuration management, including directory
paths, API server settings, authentication, asset host and application defaults.
All configuration values can be overridden via environment variables.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str = "") -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# --- Environment ---

# 'development' exposes error details in 500 responses, 'production' hides them
ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development").lower()

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

DATA_DIR = Path(os.getenv("DATA_DIR", str(ROOT_DIR / "data")))

# Images stored by the local asset host
UPLOADS_DIR = Path(os.getenv("UPLOADS_DIR", str(DATA_DIR / "uploads")))

# --- Database Configuration ---

DATABASE_URL: str = os.getenv(
    "DATABASE_URL", f"sqlite:///{DATA_DIR}/voiceit.db"
)

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "10000"))

# Base URL used to build links for locally hosted images
PUBLIC_BASE_URL: str = os.getenv(
    "PUBLIC_BASE_URL", f"http://localhost:{API_PORT}"
).rstrip("/")

# CORS allowed origins (comma-separated list)
# Default includes local development addresses. For production, set via
# CORS_ALLOWED_ORIGINS environment variable.
CORS_ALLOWED_ORIGINS: List[str] = _env_list(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173",
)

# --- Authentication Configuration ---

JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "voiceit-secret-change-in-production")
JWT_ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "30"))

# Bcrypt rounds for password hashing (higher = more secure but slower)
BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

PASSWORD_MIN_LENGTH: int = 6

# Bootstrap administrator, created at startup when email and password are set
ADMIN_NAME: str = os.getenv("ADMIN_NAME", "Admin User")
ADMIN_EMAIL: Optional[str] = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD: Optional[str] = os.getenv("ADMIN_PASSWORD")

# Addresses that are granted the admin role when they register.
# Empty by default: admin rights are assigned explicitly by another admin.
ADMIN_EMAILS: List[str] = [email.lower() for email in _env_list("ADMIN_EMAILS")]

# When true only admins may change an issue's status
STATUS_UPDATE_REQUIRES_ADMIN: bool = _env_bool("STATUS_UPDATE_REQUIRES_ADMIN")

# --- Issue Configuration ---

MAX_IMAGES_PER_ISSUE: int = int(os.getenv("MAX_IMAGES_PER_ISSUE", "5"))
MAX_IMAGE_SIZE_BYTES: int = int(os.getenv("MAX_IMAGE_SIZE_BYTES", str(5 * 1024 * 1024)))

# Issues with more upvotes than this are counted as urgent in the stats
URGENT_UPVOTE_THRESHOLD: int = int(os.getenv("URGENT_UPVOTE_THRESHOLD", "10"))

TOP_REPORTERS_LIMIT: int = 5

# Seed demo issues on startup when the issue table is empty
SEED_SAMPLE_DATA: bool = _env_bool("SEED_SAMPLE_DATA")

# --- Asset Host Configuration ---

# 'cloudinary' uploads to Cloudinary, 'local' stores files under UPLOADS_DIR
ASSET_HOST_BACKEND: str = os.getenv("ASSET_HOST_BACKEND", "cloudinary").lower()

CLOUDINARY_CLOUD_NAME: Optional[str] = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY: Optional[str] = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET: Optional[str] = os.getenv("CLOUDINARY_API_SECRET")

ASSET_FOLDER: str = os.getenv("ASSET_FOLDER", "voiceit/issues")

# Seconds before a single asset host request is abandoned
ASSET_UPLOAD_TIMEOUT: float = float(os.getenv("ASSET_UPLOAD_TIMEOUT", "20"))


def is_development() -> bool:
    """Whether error details may be returned to clients."""
    return ENVIRONMENT == "development"
