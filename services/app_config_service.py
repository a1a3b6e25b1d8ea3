"""
Application configuration loaded from environment variables.

All values have safe defaults for a standalone deployment. Settings that the
HTTP layer reads at startup live here; pipeline tunables are read by app.py
and passed down through deps.
"""
import os


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {'1', 'true', 'yes', 'on'}


def _env_int(name: str, default: int, minimum: int) -> int:
    try:
        return max(minimum, int(os.environ.get(name, str(default))))
    except ValueError:
        return default


# Branding
APP_NAME: str = os.environ.get('ADVISORYWATCH_APP_NAME', 'AdvisoryWatch')

# Storage
DB_PATH: str = os.environ.get('ADVISORYWATCH_DB_PATH', '/data/advisorywatch.db')
SEED_SOURCES: bool = _env_flag('ADVISORYWATCH_SEED_SOURCES', '1')

# Source polling
NVD_API_KEY: str = os.environ.get('NVD_API_KEY', '').strip()
NVD_LOOKBACK_DAYS: int = _env_int('NVD_LOOKBACK_DAYS', 7, 1)
SOURCE_FETCH_TIMEOUT_SECONDS: float = float(_env_int('SOURCE_FETCH_TIMEOUT_SECONDS', 30, 1))
USER_AGENT: str = os.environ.get('ADVISORYWATCH_USER_AGENT', 'AdvisoryWatch/1.0')

# Processing
PROCESS_BATCH_LIMIT: int = _env_int('PROCESS_BATCH_LIMIT', 2000, 1)

# Query surface
DEFAULT_PAGE_SIZE: int = 50
MAX_PAGE_SIZE: int = _env_int('ADVISORYWATCH_MAX_PAGE_SIZE', 500, 1)

# HTTP
REQUEST_BODY_LIMIT_BYTES: int = _env_int('ADVISORYWATCH_REQUEST_BODY_LIMIT_BYTES', 262144, 1024)
