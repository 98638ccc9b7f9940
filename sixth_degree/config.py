"""
Application configuration and environment variables
"""
import os
from pathlib import Path

# Data directory configuration
DATA_DIR = Path(os.environ.get('DATA_DIR', './data'))

# Ensure data directory exists
DATA_DIR.mkdir(parents=True, exist_ok=True)

# Database configuration
DATABASE_PATH = Path(os.environ.get('DATABASE_PATH', DATA_DIR / 'sixth_degree.db'))
DB_TIMEOUT_SECONDS = float(os.environ.get('DB_TIMEOUT_SECONDS', '20'))

# Graph cache configuration
WARM_CACHE_ON_STARTUP = os.environ.get('WARM_CACHE_ON_STARTUP', 'true').lower() in ('1', 'true', 'yes')

# API configuration
API_TITLE = "Sixth Degree Connection Finder API"
API_VERSION = "1.0.0"
SEARCH_RATE_LIMIT = os.environ.get('SEARCH_RATE_LIMIT', '60/minute')

# Logging
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

# CORS origins
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]
