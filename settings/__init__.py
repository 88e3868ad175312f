"""Application settings."""

import os
from pathlib import Path


def _optional_float(name: str) -> float | None:
    value = os.getenv(name)
    return float(value) if value else None


# Logging
LOG_DIR = Path(os.getenv("QUERY_CACHE_LOG_DIR", "logs"))
LOG_LEVEL = os.getenv("QUERY_CACHE_LOG_LEVEL", "INFO")
LOG_TO_FILE = os.getenv("QUERY_CACHE_LOG_TO_FILE", "") in ("1", "true", "yes")

# API
API_BASE_URL = os.getenv("REST_API_URL", "http://localhost:54321")
API_KEY = os.getenv("REST_API_KEY", "")
API_TIMEOUT = float(os.getenv("REST_API_TIMEOUT", "60"))
MAX_CONCURRENT = int(os.getenv("REST_MAX_CONCURRENT", "20"))

# Cache
STALE_TIME = float(os.getenv("QUERY_STALE_TIME", "300"))
GC_TIME = float(os.getenv("QUERY_GC_TIME", "600"))
GC_INTERVAL = float(os.getenv("QUERY_GC_INTERVAL", "60"))

# Retry
QUERY_RETRIES = 3
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 30.0
MUTATION_RETRIES = 1

# Mutations
MUTATION_TIMEOUT = _optional_float("MUTATION_TIMEOUT")
BULK_POLICY = os.getenv("BULK_POLICY", "all_or_nothing")
