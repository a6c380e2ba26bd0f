"""
Database Session Management

Provides database connection pooling and session management. The engine is
built on first use so that importing models or repositories never needs a
live database driver.
"""
import time
from contextlib import contextmanager
from functools import wraps
from typing import Generator, Optional

from sqlalchemy import create_engine, event, exc, pool, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from config.settings import settings
from src.realty_ingest.utils.logger import get_logger

logger = get_logger(__name__)

_engine: Optional[Engine] = None

# Session factory; bound to the engine when a session is opened
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False
)


def build_engine(database_url: str) -> Engine:
    """
    Create an engine with pooling and a per-statement timeout.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Configured Engine
    """
    url = make_url(database_url)
    kwargs = {
        "pool_pre_ping": True,  # Verify connections before using
        "echo": settings.database_echo,
    }

    if url.get_backend_name() == "postgresql":
        kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=settings.database_pool_recycle,
            connect_args={
                "options": f"-c statement_timeout={settings.database_statement_timeout_ms}"
            },
        )
    elif url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"timeout": settings.database_statement_timeout_ms / 1000}

    new_engine = create_engine(url, **kwargs)

    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_conn, connection_record):
        logger.debug("database_connection_established", backend=url.get_backend_name())

    logger.info("database_engine_created", backend=url.get_backend_name(), database=url.database)
    return new_engine


def get_engine() -> Engine:
    """Return the process-wide engine, creating it from settings on first use."""
    global _engine
    if _engine is None:
        _engine = build_engine(settings.database_url)
    return _engine


def configure_engine(database_url: str) -> Engine:
    """
    Replace the process-wide engine (e.g. for a --database-url override).
    """
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = build_engine(database_url)
    return _engine


@event.listens_for(pool.Pool, "invalidate")
def receive_invalidate(dbapi_conn, connection_record, exception):
    """
    Event listener for connection invalidation.

    Logs when a connection is marked as invalid and removed from pool.
    """
    logger.warning(
        "database_connection_invalidated",
        exception=str(exception) if exception else None
    )


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Get database session with automatic cleanup.

    Usage:
        with get_db_session() as session:
            stats = PropertyLoader().persist(session, observations)

    Yields:
        Database session

    Raises:
        Exception: Re-raises any exception after rollback
    """
    session = SessionLocal(bind=get_engine())
    try:
        logger.debug("database_session_created")
        yield session
        session.commit()
        logger.debug("database_session_committed")
    except exc.SQLAlchemyError as e:
        session.rollback()
        logger.error(
            "database_session_rollback",
            error=str(e),
            error_type=type(e).__name__
        )
        raise
    except Exception as e:
        session.rollback()
        logger.error(
            "database_session_error",
            error=str(e),
            error_type=type(e).__name__
        )
        raise
    finally:
        session.close()
        logger.debug("database_session_closed")


def health_check(session: Optional[Session] = None) -> bool:
    """
    Check database connection health.

    Args:
        session: Existing session to probe; a fresh one is opened if omitted

    Returns:
        True if database is accessible, False otherwise
    """
    try:
        if session is not None:
            session.execute(text("SELECT 1"))
        else:
            with get_db_session() as probe:
                probe.execute(text("SELECT 1"))
        logger.info("database_health_check_success")
        return True
    except exc.SQLAlchemyError as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        return False


def close_connections():
    """
    Close all database connections and dispose of the engine.

    Should be called when the batch job exits.
    """
    global _engine
    if _engine is None:
        return
    logger.info("closing_database_connections")
    _engine.dispose()
    _engine = None
    logger.info("database_connections_closed")


def create_all_tables(engine: Optional[Engine] = None):
    """
    Create all database tables defined in models.

    Args:
        engine: Target engine; defaults to the configured one
    """
    from src.realty_ingest.db.base import Base, import_all_models

    logger.info("creating_database_tables")
    import_all_models()
    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("database_tables_created")


def drop_all_tables(engine: Optional[Engine] = None):
    """
    Drop all database tables.

    WARNING: This will delete all data! Only use in development/testing.
    """
    from src.realty_ingest.db.base import Base, import_all_models

    logger.warning("dropping_all_database_tables")
    import_all_models()
    Base.metadata.drop_all(bind=engine or get_engine())
    logger.warning("all_database_tables_dropped")


def with_retry(max_retries: int = 3, retry_delay: int = 1):
    """
    Decorator to retry database operations on transient failures.

    Args:
        max_retries: Maximum number of retry attempts
        retry_delay: Base delay between retries in seconds

    Usage:
        @with_retry(max_retries=3)
        def check_store(session):
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except (exc.OperationalError, exc.DisconnectionError) as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        logger.warning(
                            "database_operation_retry",
                            attempt=attempt + 1,
                            max_retries=max_retries,
                            error=str(e)
                        )
                        time.sleep(retry_delay * (attempt + 1))
                    else:
                        logger.error(
                            "database_operation_failed_after_retries",
                            max_retries=max_retries,
                            error=str(e)
                        )

            raise last_exception

        return wrapper
    return decorator
