from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator
import redis
from .config import settings

database_url = settings.get_database_url

if database_url.startswith("sqlite"):
    # SQLite connections are shared with the threadpool running sync routes
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,  # Recycle connections after 30 minutes
        pool_pre_ping=True,
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Connections are opened lazily on first command
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

# Database dependency
def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Redis dependency
def get_redis():
    """Get Redis client."""
    return redis_client

# Database initialization
def init_db():
    """Create all tables."""
    # Register every mapped class on Base.metadata
    from ..models import appointment, mail_delivery, newsletter, user  # noqa: F401

    Base.metadata.create_all(bind=engine)
