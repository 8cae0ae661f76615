"""
Runtime settings read from the environment.
"""

import os

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "unimart")

PORT = int(os.getenv("PORT", 8000))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", f"http://localhost:{PORT}").rstrip("/")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE")

# Favorites live on the client side of the system, outside the shared database
FAVORITES_PATH = os.getenv("FAVORITES_PATH", "data/favorites.json")

SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", 7))
MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", 5 * 1024 * 1024))
UPLOAD_WORKERS = int(os.getenv("UPLOAD_WORKERS", 3))
MAX_PRODUCT_IMAGES = 3
