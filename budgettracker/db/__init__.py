"""
Database initialization and management
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from budgettracker.db.models import Base
from budgettracker.db.repositories import RecommendationRepository, TransactionRepository

logger = logging.getLogger(__name__)

__all__ = [
    "DatabaseManager",
    "RecommendationRepository",
    "TransactionRepository",
    "get_db",
]


class DatabaseManager:
    """Database manager"""

    def __init__(self, database_url: Optional[str] = None):
        if database_url is None:
            from budgettracker.core.settings import settings
            database_url = settings.DATABASE_URL

        self.database_url = database_url

        if database_url.startswith("sqlite:///"):
            db_path = database_url.replace("sqlite:///", "")
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        connect_args = {}
        if "sqlite" in database_url:
            # tool handlers open sessions from worker threads
            connect_args["check_same_thread"] = False

        self.engine = create_engine(
            database_url,
            connect_args=connect_args,
            echo=False,
        )

        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        self.init_db()

    def init_db(self):
        """Create tables"""
        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables initialized")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Session context manager: commit on success, roll back on error"""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


db_manager: Optional[DatabaseManager] = None


def get_db() -> DatabaseManager:
    """Global database manager"""
    global db_manager
    if db_manager is None:
        db_manager = DatabaseManager()
    return db_manager
