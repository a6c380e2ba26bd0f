"""
Database Package

Database models, connection management, and data persistence layer.
"""
from src.realty_ingest.db.base import Base
from src.realty_ingest.db.session import (
    SessionLocal,
    build_engine,
    get_engine,
    configure_engine,
    get_db_session,
    health_check,
    close_connections,
    create_all_tables,
    drop_all_tables,
    with_retry,
)
from src.realty_ingest.db.models import (
    Property,
    SaleHistory,
    RentalMedian,
    IngestionRun,
)
from src.realty_ingest.db.repository import (
    BaseRepository,
    PropertyRepository,
    SaleHistoryRepository,
    RentalMedianRepository,
    IngestionRunRepository,
)
from src.realty_ingest.db import utils as db_utils

__all__ = [
    # Base
    "Base",
    # Session management
    "SessionLocal",
    "build_engine",
    "get_engine",
    "configure_engine",
    "get_db_session",
    "health_check",
    "close_connections",
    "create_all_tables",
    "drop_all_tables",
    "with_retry",
    # Models
    "Property",
    "SaleHistory",
    "RentalMedian",
    "IngestionRun",
    # Repositories
    "BaseRepository",
    "PropertyRepository",
    "SaleHistoryRepository",
    "RentalMedianRepository",
    "IngestionRunRepository",
    # Utilities
    "db_utils",
]
