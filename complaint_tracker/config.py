"""
Application configuration loaded from environment variables.

A .env file in the working directory is honoured for local development.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration."""

    # Use PostgreSQL in production (from DATABASE_URL env var), SQLite locally
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./complaint_tracker.db")

    # Where uploaded completion documents are written
    EVIDENCE_DIR = os.getenv("EVIDENCE_DIR", "./uploads")

    # Work order numbering: PA25-01-00007
    SEQUENCE_PREFIX = os.getenv("SEQUENCE_PREFIX", "PA")
    SEQUENCE_WIDTH = int(os.getenv("SEQUENCE_WIDTH", "5"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def get_database_url(cls) -> str:
        """Normalise the database URL for SQLAlchemy."""
        url = cls.DATABASE_URL
        # Fix for Render/Heroku: they use postgres:// but SQLAlchemy needs postgresql://
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url
