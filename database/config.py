"""
Database configuration for the procurement store (SQLite or Postgres).
The connection handle is created at startup and passed to whoever needs it.
"""

import logging
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Base class for ORM models
Base = declarative_base()


class Database:
    """Owns the SQLAlchemy engine and session factory for one process."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = self._create_engine(url, echo)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @staticmethod
    def _create_engine(url: str, echo: bool):
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            # In-memory databases live as long as their single connection
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
            return create_engine(url, echo=echo, **kwargs)

        return create_engine(
            url,
            echo=echo,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Verify connections before using
            pool_recycle=3600,  # Recycle connections after 1 hour
        )

    def session(self) -> Session:
        return self.SessionLocal()

    def create_tables(self):
        """Create all tables defined in models."""
        from . import models  # noqa: F401  registers models with Base

        Base.metadata.create_all(bind=self.engine)
        logger.info("Tables created")

    def drop_tables(self):
        """Drop all tables. USE WITH CAUTION!"""
        Base.metadata.drop_all(bind=self.engine)
        logger.warning("Tables dropped")

    def ping(self) -> bool:
        """Test database connection"""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            return False

    def dispose(self):
        self.engine.dispose()
        logger.info("Database connections closed")

    @property
    def safe_url(self) -> str:
        return self.url.split("@")[1] if "@" in self.url else self.url


def get_db(request: Request) -> Iterator[Session]:
    """
    Database session generator for FastAPI dependency injection.
    Usage:
        @app.get("/")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
