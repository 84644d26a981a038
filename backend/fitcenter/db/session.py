import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from fitcenter.core import config
from fitcenter.core.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()

# Internal lazy globals
_engine = None
_SessionLocal = None
_database_url = None


def get_engine():
    """Return a cached SQLAlchemy engine, creating it from DATABASE_URL on
    first call. This allows tests to set DATABASE_URL before the engine is
    constructed."""
    global _engine
    global _database_url
    global _SessionLocal
    database_url = config.get_database_url()
    if _engine is None or _database_url != database_url:
        if _engine is not None:
            _engine.dispose()
            _SessionLocal = None

        url = make_url(database_url)
        if url.drivername.startswith("postgres"):
            _engine = create_engine(
                database_url,
                pool_size=20,
                max_overflow=40,
                pool_pre_ping=True,
                pool_recycle=3600,
                connect_args={
                    "application_name": "fitcenter",
                    "connect_timeout": 10,
                },
                echo=False,
            )
        elif url.drivername.startswith("sqlite") and url.database in (
            None,
            "",
            ":memory:",
        ):
            # Single shared in-memory database so DDL persists across sessions
            _engine = create_engine(
                database_url,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        elif url.drivername.startswith("sqlite"):
            _engine = create_engine(
                database_url,
                echo=False,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        else:
            _engine = create_engine(database_url, echo=False)

        logger.info(
            "Database engine created",
            extra={
                "context": {
                    "dialect": _engine.dialect.name,
                    "database": url.database,
                }
            },
        )
        _database_url = database_url
    return _engine


def get_sessionmaker():
    """Return a cached sessionmaker bound to the lazy engine."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=get_engine()
        )
    return _SessionLocal


def SessionLocal() -> Session:
    """Calling SessionLocal() returns a new Session bound to the lazy engine."""
    return get_sessionmaker()()


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create all tables in database using the lazy engine."""
    # Models must be imported so Base.metadata is populated
    from fitcenter.db import base  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


@contextmanager
def transactional(session: Session):
    """Run a unit of work: commit on success, roll back on any failure.

    Lock timeouts, deadlocks and serialization failures reported by the
    driver are translated into ConcurrencyConflictError after rollback.
    """
    try:
        yield session
        session.commit()
    except OperationalError as e:
        session.rollback()
        logger.warning(
            "Transaction rolled back after database conflict",
            extra={"context": {"error": str(e.orig)}},
        )
        raise ConcurrencyConflictError(
            "The operation conflicted with a concurrent update. Please retry.",
            context={"error": str(e.orig)},
        ) from e
    except Exception:
        session.rollback()
        raise
