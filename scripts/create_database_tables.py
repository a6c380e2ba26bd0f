"""
Create Database Tables Using SQLAlchemy

Bootstraps a fresh property store with create_all(). Existing tables are left
untouched unless --reset is given.
"""
import argparse
import sys
from pathlib import Path

# Add parent directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import sqlalchemy as sa

from src.realty_ingest.db.session import (
    close_connections,
    configure_engine,
    create_all_tables,
    drop_all_tables,
    get_engine,
    health_check,
)
from src.realty_ingest.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create property store tables")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first (destroys data)")
    return parser.parse_args()


def main() -> int:
    """Create all database tables."""
    args = parse_args()
    setup_logging()

    if args.database_url:
        configure_engine(args.database_url)

    if not health_check():
        logger.error("database_unreachable")
        return 1

    engine = get_engine()

    if args.reset:
        drop_all_tables(engine)

    create_all_tables(engine)

    tables = sorted(sa.inspect(engine).get_table_names())
    logger.info("tables_verified", count=len(tables), tables=tables)

    close_connections()
    return 0


if __name__ == "__main__":
    sys.exit(main())
