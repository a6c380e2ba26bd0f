"""
Database Utilities

Helper functions for dialect-aware statements and value conversion.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Type

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from src.realty_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def dialect_insert(session: Session, model: Type[Any]):
    """
    Build an INSERT that supports ON CONFLICT for the session's backend.

    PostgreSQL in production, SQLite in tests; both expose
    on_conflict_do_nothing / on_conflict_do_update.

    Args:
        session: Database session
        model: Mapped model class

    Returns:
        Dialect-specific Insert construct
    """
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert(model)
    if dialect_name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"ON CONFLICT inserts are not supported for dialect '{dialect_name}'")


def insert_ignore_conflict(
    session: Session,
    model: Type[Any],
    values: Dict[str, Any],
    index_elements: List[str],
) -> bool:
    """
    Insert a row unless it collides with the given unique key.

    Args:
        session: Database session
        model: Mapped model class
        values: Column values
        index_elements: Columns of the unique constraint guarding the insert

    Returns:
        True if a row was inserted, False if the key already existed
    """
    stmt = dialect_insert(session, model).values(**values)
    stmt = stmt.on_conflict_do_nothing(index_elements=index_elements)
    result = session.execute(stmt)
    return result.rowcount > 0


def parse_date_string(date_str: Optional[str]) -> Optional[date]:
    """
    Parse date string in various formats.

    Australian sources publish day-first dates, so DD/MM/YYYY is tried before
    ISO and month-first forms.

    Args:
        date_str: Date string (DD/MM/YYYY, YYYY-MM-DD, ...)

    Returns:
        date object or None
    """
    if not date_str:
        return None

    formats = [
        '%d/%m/%Y',
        '%Y-%m-%d',
        '%Y%m%d',
        '%d-%m-%Y',
    ]

    cleaned = str(date_str).strip()
    for fmt in formats:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue

    logger.debug("date_parse_failed", date_str=date_str)
    return None


def parse_money(value: Any) -> Optional[int]:
    """
    Parse a currency amount such as "$750,000" into whole dollars.

    Returns:
        Integer amount or None when the value is blank or not numeric
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return None
        return int(value)

    cleaned = str(value).replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        return int(cleaned)
    except ValueError:
        try:
            return int(float(cleaned))
        except ValueError:
            return None
