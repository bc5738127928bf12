"""
Database connection and session management.
"""
import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from todo_api.core.config import DATABASE_URL

logger = logging.getLogger(__name__)

if not DATABASE_URL:
    raise ValueError("DATABASE_URL not configured. Create todo_api/config_local.py from config_local.example.py")

_is_sqlite = DATABASE_URL.startswith("sqlite")

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,  # Verify connections before using
    echo=False,  # Set to True for SQL debugging
    # SQLite connections are shared between the request thread pool and the scheduler thread
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    **({} if _is_sqlite else {
        "pool_recycle": 3600,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 60,
    })
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None):
    """Create all tables (schema migrations are not managed by this service)."""
    # Import models so they register on Base.metadata
    import todo_api.models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """Dependency for FastAPI to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        try:
            db.close()
        except Exception as e:
            # If connection is already lost, just log and continue
            logger.warning(f"Error closing database session (connection may be lost): {str(e)}")
