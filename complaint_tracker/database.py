"""
Engine and session wiring.

One engine per process, built from Config. Tests build their own through
build_engine so they get the same dialect settings.
"""
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from complaint_tracker.config import Config

Base = declarative_base()


def build_engine(url: str, **overrides) -> Engine:
    """SQLite for local runs and tests, pooled PostgreSQL otherwise."""
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
    else:
        options = {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}
    options.update(overrides)
    return create_engine(url, **options)


engine = build_engine(Config.get_database_url())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create any missing tables. Models must be imported first."""
    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """Request-scoped session for FastAPI dependencies."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
