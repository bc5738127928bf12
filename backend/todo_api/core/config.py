"""
Configuration management.
Loads from config_local.py (gitignored) for secrets, with defaults.
"""
from typing import Optional

# Try to import local config (gitignored)
try:
    from todo_api.config_local import (
        DATABASE_URL,
        SESSION_COOKIE_NAME,
        SESSION_SECRET,
        LOG_LEVEL,
    )
    # Scheduler and seeding settings are optional in older config_local files
    try:
        from todo_api.config_local import (
            ENABLE_RECURRENCE_SCHEDULER,
            RECURRENCE_SWEEP_CRON,
            RECURRENCE_MAX_RETRIES,
            SEED_DEFAULT_DATA,
        )
    except ImportError:
        ENABLE_RECURRENCE_SCHEDULER = False
        RECURRENCE_SWEEP_CRON = "*/15 * * * *"
        RECURRENCE_MAX_RETRIES = 3
        SEED_DEFAULT_DATA = True
    try:
        from todo_api.config_local import SESSION_TTL_HOURS, CORS_ORIGINS
    except ImportError:
        SESSION_TTL_HOURS = 24
        CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
    try:
        from todo_api.config_local import ROUTE_PERMISSIONS
    except ImportError:
        ROUTE_PERMISSIONS = None  # None = use DEFAULT_ROUTE_PERMISSIONS from core.permissions
except ImportError:
    # Fallback defaults (SQLite file database, development session secret)
    DATABASE_URL: str = "sqlite:///./todo_api.db"
    SESSION_COOKIE_NAME: str = "todo_session"
    SESSION_SECRET: Optional[str] = None
    SESSION_TTL_HOURS: int = 24
    LOG_LEVEL: str = "INFO"
    ENABLE_RECURRENCE_SCHEDULER: bool = False
    RECURRENCE_SWEEP_CRON: str = "*/15 * * * *"  # every 15 minutes
    RECURRENCE_MAX_RETRIES: int = 3  # optimistic-concurrency retries per rule
    SEED_DEFAULT_DATA: bool = True
    CORS_ORIGINS: list = ["http://localhost:3000", "http://127.0.0.1:3000"]
    ROUTE_PERMISSIONS = None


def get_settings():
    """Return settings object (for FastAPI dependency injection if needed)."""
    return type("Settings", (), {
        "database_url": DATABASE_URL,
        "session_cookie_name": SESSION_COOKIE_NAME,
        "session_secret": SESSION_SECRET,
        "session_ttl_hours": SESSION_TTL_HOURS,
        "log_level": LOG_LEVEL,
        "enable_recurrence_scheduler": ENABLE_RECURRENCE_SCHEDULER,
        "recurrence_sweep_cron": RECURRENCE_SWEEP_CRON,
        "recurrence_max_retries": RECURRENCE_MAX_RETRIES,
        "seed_default_data": SEED_DEFAULT_DATA,
        "cors_origins": CORS_ORIGINS,
        "route_permissions": ROUTE_PERMISSIONS,
    })()
