# app/database.py
import logging

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, Session

from app.config import settings

logger = logging.getLogger(__name__)

def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_size": settings.DB_POOL_SIZE, "max_overflow": 0, "pool_pre_ping": True}

engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    """Yield a session per request and always close it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db() -> None:
    # Models must be imported so their tables are registered on Base.metadata
    from app.models.all_models import Base

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")

def check_db_connection(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        return False

def apply_updates(row, updates: dict) -> None:
    """Copy a partial update onto a row; a null for a NOT NULL column leaves it unchanged."""
    columns = inspect(type(row)).columns
    for field, value in updates.items():
        column = columns.get(field)
        if value is None and column is not None and not column.nullable:
            continue
        setattr(row, field, value)
