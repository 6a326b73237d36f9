"""
Configuration module for the job pipeline service
"""

import os


def env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable"""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def env_int(key: str, default: int, minimum: int = 0) -> int:
    """Get integer value from environment variable, clamped to a minimum"""
    try:
        value = int(os.getenv(key, str(default)))
    except ValueError:
        value = default
    return max(minimum, value)


API_VERSION = os.getenv("APP_VERSION", "dev")

# Database configuration
SQLITE_PATH = os.getenv("SQLITE_PATH", "./job_pipeline.db")
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{SQLITE_PATH}")

# API configuration
API_PREFIX = os.getenv("API_PREFIX", "/v1").rstrip("/")

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
LOG_EXCLUDE_PATHS = set(os.getenv("LOG_EXCLUDE_PATHS", f"{API_PREFIX}/health,{API_PREFIX}/metrics/prometheus").split(","))

# Access control
ADMIN_ROLE = os.getenv("ADMIN_ROLE", "admin")

# Bulk executor configuration
BULK_MAX_WORKERS = env_int("BULK_MAX_WORKERS", 4, minimum=1)
BULK_MAX_JOB_IDS = env_int("BULK_MAX_JOB_IDS", 500, minimum=1)

# Side-effect dispatcher configuration
DISPATCH_WORKER_POOL_SIZE = env_int("DISPATCH_WORKER_POOL_SIZE", 2, minimum=1)
DISPATCH_TIMEOUT_MS = env_int("DISPATCH_TIMEOUT_MS", 5000, minimum=1)

# Email configuration
EMAIL_PROVIDER = os.getenv("EMAIL_PROVIDER", "console").lower()
EMAIL_WEBHOOK_URL = os.getenv("EMAIL_WEBHOOK_URL", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "no-reply@localhost")
APP_BASE_URL = os.getenv("APP_BASE_URL", "").rstrip("/")

# Create tables on startup (disable when Alembic owns the schema)
AUTO_CREATE_SCHEMA = env_bool("AUTO_CREATE_SCHEMA", True)
