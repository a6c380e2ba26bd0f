"""
SQLAlchemy Base and Mixins

Provides declarative base and reusable mixins for database models.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """
    Base class for all database models.

    Provides common functionality and type hints for SQLAlchemy models.
    """

    # Type annotation for primary keys
    id: Any


class CreatedAtMixin:
    """
    Mixin to add a created_at timestamp column.

    Rows written by the pipeline are append-only or mutated in place, so only
    creation time is tracked generically.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp when record was created"
    )


class DataSourceMixin:
    """
    Mixin to track which source produced a row.
    """

    data_source: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Source identifier, e.g. nsw_sales"
    )


# Import all models to ensure they're registered with Base
def import_all_models():
    """
    Import all models to register them with SQLAlchemy Base.

    Must be called before Base.metadata.create_all so every table is known.
    """
    from src.realty_ingest.db import models  # noqa: F401
