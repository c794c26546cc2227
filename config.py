"""
Application settings

Every value is read from the environment once at import time. A `.env.local`
file next to this module is honoured for local development.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent

load_dotenv(BASE_DIR / ".env.local")
load_dotenv(BASE_DIR / ".env")

PORT = int(os.getenv("PORT", 3000))
FRONTEND_URL = os.getenv("FRONTEND_URL", "*")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Storage
DATA_DIR = Path(os.getenv("DATA_DIR", BASE_DIR / "data"))
ASSETS_DIR = Path(os.getenv("ASSETS_DIR", BASE_DIR / "assets"))
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", ASSETS_DIR / "uploads"))
UPLOAD_URL_PREFIX = "/assets/uploads"
TEMPLATES_DIR = BASE_DIR / "templates"

COLLECTIONS = ("resources", "demos", "testimonials")

# Uploads
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", 5 * 1024 * 1024))
ALLOWED_IMAGE_EXTENSIONS = ("jpeg", "jpg", "png", "gif", "webp", "svg")

# Admin
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD") or "admin"
ADMIN_PASSWORD_HASH = os.getenv("ADMIN_PASSWORD_HASH")
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 8))

# Dashboard
TIMELINE_LIMIT = int(os.getenv("TIMELINE_LIMIT", 10))

os.makedirs(DATA_DIR, exist_ok=True)
os.makedirs(ASSETS_DIR, exist_ok=True)
os.makedirs(UPLOAD_DIR, exist_ok=True)
