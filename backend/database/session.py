# backend/database/session.py
"""
Database Session Management
"""

from contextlib import contextmanager
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Iterator
import logging

from .models import Base

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the engine and session factory for one database URL
    Build one at startup from settings and pass it to the key store
    """

    def __init__(self, url: str, echo: bool = False, pool_size: int = 5, max_overflow: int = 10):
        self.url = url

        if url.startswith("sqlite"):
            # SQLite specific settings
            self.engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo,
            )
        else:
            # PostgreSQL or other databases
            self.engine = create_engine(
                url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,
                echo=echo,
            )

        # Session factory
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine
        )

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )

    def init_db(self) -> None:
        """
        Initialize database tables
        Call this on application startup
        """
        logger.info("Initializing database...")
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database initialized successfully")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Transactional session scope
        Commits on success, rolls back on error, always closes
        """
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def check_connection(self) -> bool:
        """Check if database connection is healthy"""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    def dispose(self) -> None:
        self.engine.dispose()
