"""
Repository Pattern for Data Access

Provides CRUD operations and the point lookups the persistence stage needs.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Type, TypeVar

from sqlalchemy import select, and_, desc
from sqlalchemy.orm import Session

from src.realty_ingest.db.models import (
    Property,
    SaleHistory,
    RentalMedian,
    IngestionRun,
)
from src.realty_ingest.db.utils import insert_ignore_conflict
from src.realty_ingest.models.observation import RentalMedianRecord, State
from src.realty_ingest.models.statistics import RunStatistics
from src.realty_ingest.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


def _state_value(state: Any) -> str:
    return state.value if isinstance(state, State) else str(state)


class BaseRepository:
    """
    Base repository with common CRUD operations.

    Generic repository that can be extended for specific models.
    """

    def __init__(self, model: Type[T]):
        """
        Initialize repository with model class.

        Args:
            model: SQLAlchemy model class
        """
        self.model = model
        logger.debug("repository_initialized", model=model.__name__)

    def get_by_id(self, session: Session, id_value: Any) -> Optional[T]:
        """
        Get single record by primary key.

        Args:
            session: Database session
            id_value: Primary key value

        Returns:
            Model instance or None
        """
        result = session.get(self.model, id_value)
        logger.debug(
            "repository_get_by_id",
            model=self.model.__name__,
            id=id_value,
            found=result is not None
        )
        return result

    def create(self, session: Session, **kwargs) -> T:
        """
        Create new record.

        Args:
            session: Database session
            **kwargs: Model field values

        Returns:
            Created model instance
        """
        instance = self.model(**kwargs)
        session.add(instance)
        session.flush()
        logger.debug("repository_created", model=self.model.__name__, id=getattr(instance, 'id', None))
        return instance


class PropertyRepository(BaseRepository):
    """Repository for stored properties with identity lookups."""

    def __init__(self):
        super().__init__(Property)

    def get_by_external_id(self, session: Session, external_id: str, state: Any) -> Optional[Property]:
        """
        Find a property by source-native identifier within a jurisdiction.

        Rows are locked FOR UPDATE so concurrent runs cannot both overwrite
        the same property from a stale read (no-op on SQLite).
        """
        query = (
            select(Property)
            .where(and_(Property.external_id == external_id, Property.state == _state_value(state)))
            .with_for_update()
        )
        return session.execute(query).scalar_one_or_none()

    def get_by_address(
        self,
        session: Session,
        address: str,
        postcode: str,
        state: Any
    ) -> Optional[Property]:
        """Find a property by (address, postcode, state)."""
        query = (
            select(Property)
            .where(
                and_(
                    Property.address == address,
                    Property.postcode == postcode,
                    Property.state == _state_value(state),
                )
            )
            .with_for_update()
        )
        return session.execute(query).scalar_one_or_none()

    def replace_fields(self, session: Session, prop: Property, values: Dict[str, Any]) -> Property:
        """
        Overwrite every mutable column and refresh last_updated.

        Args:
            session: Database session
            prop: Stored property to mutate
            values: Full column set from the incoming observation

        Returns:
            The mutated property
        """
        for key, value in values.items():
            setattr(prop, key, value)
        prop.last_updated = datetime.now(timezone.utc)
        session.flush()
        return prop


class SaleHistoryRepository(BaseRepository):
    """Repository for the append-only sale ledger."""

    def __init__(self):
        super().__init__(SaleHistory)

    def append(
        self,
        session: Session,
        property_id: int,
        sale_price: int,
        sale_date: date,
        data_source: str,
        settlement_date: Optional[date] = None,
        contract_date: Optional[date] = None,
    ) -> bool:
        """
        Record a sale unless (property_id, sale_date, sale_price) already exists.

        Returns:
            True if a new ledger row was written
        """
        inserted = insert_ignore_conflict(
            session,
            SaleHistory,
            {
                "property_id": property_id,
                "sale_price": sale_price,
                "sale_date": sale_date,
                "settlement_date": settlement_date,
                "contract_date": contract_date,
                "data_source": data_source,
            },
            index_elements=["property_id", "sale_date", "sale_price"],
        )
        if inserted:
            logger.debug(
                "sale_history_appended",
                property_id=property_id,
                price=sale_price,
                sale_date=sale_date
            )
        return inserted


class RentalMedianRepository(BaseRepository):
    """Repository for aggregate rental medians."""

    def __init__(self):
        super().__init__(RentalMedian)

    def insert_if_absent(self, session: Session, median: RentalMedianRecord) -> bool:
        """
        Insert guarded by the natural key (state, postcode, bedrooms, period, data_source).

        Returns:
            True if inserted, False if the key already existed
        """
        return insert_ignore_conflict(
            session,
            RentalMedian,
            median.to_row(),
            index_elements=["state", "postcode", "bedrooms", "period", "data_source"],
        )

    def get_latest(
        self,
        session: Session,
        state: Any,
        postcode: str,
        bedrooms: int
    ) -> Optional[RentalMedian]:
        """
        Most recent median for a (state, postcode, bedrooms) key.

        Args:
            session: Database session
            state: Jurisdiction
            postcode: Postal code
            bedrooms: Bedroom count

        Returns:
            Latest RentalMedian by period, or None
        """
        query = (
            select(RentalMedian)
            .where(
                and_(
                    RentalMedian.state == _state_value(state),
                    RentalMedian.postcode == postcode,
                    RentalMedian.bedrooms == bedrooms,
                )
            )
            .order_by(desc(RentalMedian.period), desc(RentalMedian.id))
            .limit(1)
        )
        return session.execute(query).scalars().first()


class IngestionRunRepository(BaseRepository):
    """Repository for IngestionRun bookkeeping."""

    def __init__(self):
        super().__init__(IngestionRun)

    def create_run(
        self,
        session: Session,
        source_id: str,
        started_at: Optional[datetime] = None
    ) -> IngestionRun:
        """
        Create new ingestion run.

        Args:
            session: Database session
            source_id: Source identifier (nsw_sales, nsw_rentals, ...)
            started_at: Start timestamp (defaults to now)

        Returns:
            IngestionRun instance
        """
        if started_at is None:
            started_at = datetime.now(timezone.utc)

        run = IngestionRun(
            source_id=source_id,
            status='running',
            started_at=started_at
        )

        session.add(run)
        session.flush()

        logger.info("ingestion_run_created", run_id=run.id, source_id=source_id)
        return run

    def complete_run(
        self,
        session: Session,
        run_id: int,
        stats: RunStatistics,
        records_fetched: int = 0,
    ) -> IngestionRun:
        """
        Mark ingestion run as completed with its statistics.
        """
        run = self.get_by_id(session, run_id)
        if not run:
            raise ValueError(f"IngestionRun {run_id} not found")

        run.status = 'completed'
        run.records_fetched = records_fetched
        run.records_inserted = stats.inserted
        run.records_updated = stats.updated
        run.records_skipped = stats.skipped
        run.records_errored = stats.errors
        run.completed_at = datetime.now(timezone.utc)
        session.flush()

        logger.info("ingestion_run_completed", run_id=run_id, **stats.as_dict())
        return run

    def fail_run(
        self,
        session: Session,
        run_id: int,
        error_message: str,
        records_fetched: int = 0,
    ) -> IngestionRun:
        """
        Mark ingestion run as failed.
        """
        run = self.get_by_id(session, run_id)
        if not run:
            raise ValueError(f"IngestionRun {run_id} not found")

        run.status = 'failed'
        run.records_fetched = records_fetched
        run.error_message = error_message
        run.completed_at = datetime.now(timezone.utc)
        session.flush()

        logger.warning("ingestion_run_failed", run_id=run_id, error=error_message)
        return run
