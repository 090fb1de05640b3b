"""
Database connection management

``Database`` owns one SQLAlchemy engine and its session factory. The
application factory builds it from settings and keeps it on ``app.state``;
nothing in the package holds a module-level connection.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.core.config import Settings
from storefront.core.exceptions import StorefrontException, UpstreamFailureException
from storefront.models.base import Base

logger = logging.getLogger(__name__)

__all__ = ["Database", "atomic"]


class Database:
    """Engine + session factory"""

    def __init__(self, url: str, pool_size: int = 5, max_overflow: int = 10, echo: bool = False):
        self.url = url
        if url.startswith("sqlite"):
            engine_kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in url or url.rstrip("/") == "sqlite:":
                # one shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs = {
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_pre_ping": True,
                "pool_recycle": 3600,
            }
        self.engine = create_engine(url, echo=echo, **engine_kwargs)
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        logger.info("Database engine initialised")

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            echo=settings.DB_ECHO,
        )

    def create_all(self):
        """Create every mapped table (development and tests)"""
        import storefront.models  # noqa: F401  registers the mappers

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self):
        Base.metadata.drop_all(bind=self.engine)

    def session(self) -> Session:
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Session context manager: commit on success, rollback on error"""
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def health_check(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def dispose(self):
        self.engine.dispose()
        logger.info("Database connections closed")


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Run one business operation as a single transaction.

    Business exceptions roll back and propagate unchanged; driver errors roll
    back and surface as ``UpstreamFailureException``.
    """
    try:
        yield db
        db.commit()
    except StorefrontException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Transaction rolled back: {e}", exc_info=True)
        raise UpstreamFailureException("Database transaction failed", code="TRANSACTION_FAILED") from e
    except Exception:
        db.rollback()
        raise
