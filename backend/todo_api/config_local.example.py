"""
Local configuration example for the backend.
Copy this file as `todo_api/config_local.py` and keep it out of git.
"""

# Database
# SQLite for development; any SQLAlchemy URL works (e.g. postgresql+psycopg://...)
DATABASE_URL = "sqlite:///./todo_api.db"

# Security
SESSION_COOKIE_NAME = "todo_session"
SESSION_SECRET = "CHANGE_ME_RANDOM_SECRET_FOR_SIGNING"  # keep only on the server
SESSION_TTL_HOURS = 24

# Logging
LOG_LEVEL = "INFO"

# Recurrence scheduler
ENABLE_RECURRENCE_SCHEDULER = True
RECURRENCE_SWEEP_CRON = "*/15 * * * *"  # crontab, UTC
RECURRENCE_MAX_RETRIES = 3

# Seed roles, permissions and the TodoApp/ExpenseApp features on startup
SEED_DEFAULT_DATA = True

CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

# Route policy override; None keeps the built-in table.
# Entries: {"path_template": "/api/reports/{id}", "method": "GET",
#           "roles": ["Admin", "Manager"], "permissions": ["ViewStatistics"]}
ROUTE_PERMISSIONS = None
