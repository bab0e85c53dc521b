"""Configuration and constants for the RSS search service."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"
FEEDS_PATH = Path(os.getenv("FEEDS_PATH", PROJECT_ROOT / "feeds.json"))
CACHE_PATH = Path(os.getenv("CACHE_PATH", DATA_DIR / "articles-cache.json"))

# Refresh
REFRESH_INTERVAL_MINUTES = float(os.getenv("REFRESH_INTERVAL_MINUTES", "30"))
FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "15"))
USER_AGENT = os.getenv("USER_AGENT", "RSSSearch/1.0 (News aggregator)")

# Articles
SNIPPET_LENGTH = 300
DEFAULT_CATEGORY = "general"

# Search
DEFAULT_SEARCH_LIMIT = int(os.getenv("DEFAULT_SEARCH_LIMIT", "20"))

# Server
BACKEND_HOST = os.getenv("BACKEND_HOST", "127.0.0.1")
BACKEND_PORT = int(os.getenv("BACKEND_PORT", "3000"))
# Comma-separated list of origins allowed to call the API from a browser
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Runtime options
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
