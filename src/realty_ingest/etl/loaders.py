"""
ETL Loaders

Persist enriched observations into the property store, reconciling each one
against any stored property that describes the same real-world property.
"""
from enum import Enum
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.realty_ingest.db.models import Property
from src.realty_ingest.db.repository import (
    PropertyRepository,
    RentalMedianRepository,
    SaleHistoryRepository,
)
from src.realty_ingest.models.observation import PropertyObservation, RentalMedianRecord
from src.realty_ingest.models.statistics import RunStatistics
from src.realty_ingest.scoring.quality import quantize_confidence, should_replace
from src.realty_ingest.utils.logger import get_logger

logger = get_logger(__name__)

# Per-record failures: store errors (incl. statement timeouts) and bad values
RECORD_ERRORS = (SQLAlchemyError, ValueError, TimeoutError)


class WriteOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"


class PropertyLoader:
    """
    Load observations into the properties table with quality-based conflict resolution.

    For each observation: find the stored property (external id first, then
    address + postcode), then insert, overwrite, or skip. Each record runs in
    its own SAVEPOINT so a failure rolls back only that record.
    """

    def __init__(
        self,
        property_repository: Optional[PropertyRepository] = None,
        sale_history_repository: Optional[SaleHistoryRepository] = None,
    ):
        self.repository = property_repository or PropertyRepository()
        self.sale_history = sale_history_repository or SaleHistoryRepository()
        logger.debug("property_loader_initialized")

    def find_existing(self, session: Session, observation: PropertyObservation) -> Optional[Property]:
        """
        Locate the stored property for an observation.

        Precedence: (external_id, state) when an external id is present and
        matches; otherwise (address, postcode, state) when a postcode is
        present; otherwise no match.
        """
        if observation.external_id:
            found = self.repository.get_by_external_id(session, observation.external_id, observation.state)
            if found is not None:
                return found

        if observation.postcode:
            return self.repository.get_by_address(
                session,
                observation.address,
                observation.postcode,
                observation.state
            )

        return None

    def to_property_data(self, observation: PropertyObservation) -> dict:
        """Column values for an insert or full-row overwrite."""
        data = observation.to_row()
        data["confidence_score"] = quantize_confidence(data["confidence_score"])
        return data

    def record_sale(self, session: Session, property_id: int, observation: PropertyObservation) -> bool:
        """Append to the sale ledger when both price and date are known."""
        if not observation.has_sale():
            return False
        return self.sale_history.append(
            session,
            property_id=property_id,
            sale_price=observation.sale_price,
            sale_date=observation.sale_date,
            settlement_date=observation.sale_date,
            contract_date=observation.contract_date,
            data_source=observation.source_metadata.source_id,
        )

    def load(self, session: Session, observation: PropertyObservation) -> WriteOutcome:
        """
        Apply the insert / overwrite / skip decision for one observation.

        Args:
            session: Database session
            observation: Enriched observation

        Returns:
            The outcome for this record
        """
        existing = self.find_existing(session, observation)

        if existing is None:
            created = self.repository.create(session, **self.to_property_data(observation))
            self.record_sale(session, created.id, observation)
            logger.debug("property_inserted", property_id=created.id, address=observation.address)
            return WriteOutcome.INSERTED

        existing_score = existing.quality_score()
        new_score = observation.quality_score

        if should_replace(existing_score, new_score):
            self.repository.replace_fields(session, existing, self.to_property_data(observation))
            self.record_sale(session, existing.id, observation)
            logger.debug(
                "property_updated",
                property_id=existing.id,
                address=observation.address,
                existing_score=str(existing_score),
                new_score=str(new_score)
            )
            return WriteOutcome.UPDATED

        logger.debug(
            "property_skipped",
            property_id=existing.id,
            address=observation.address,
            existing_score=str(existing_score),
            new_score=str(new_score)
        )
        return WriteOutcome.SKIPPED

    def persist(self, session: Session, observations: Sequence[PropertyObservation]) -> RunStatistics:
        """
        Persist a batch, one record at a time in input order.

        Args:
            session: Database session
            observations: Enriched observations

        Returns:
            RunStatistics with exact insert / update / skip / error counts
        """
        logger.info("property_write_started", records=len(observations))
        stats = RunStatistics()

        for observation in observations:
            try:
                with session.begin_nested():
                    outcome = self.load(session, observation)
            except RECORD_ERRORS as e:
                stats.errors += 1
                logger.warning(
                    "property_write_failed",
                    address=observation.address,
                    external_id=observation.external_id,
                    error=str(e),
                    error_type=type(e).__name__
                )
                continue

            if outcome is WriteOutcome.INSERTED:
                stats.inserted += 1
            elif outcome is WriteOutcome.UPDATED:
                stats.updated += 1
            else:
                stats.skipped += 1

        logger.info("property_write_complete", **stats.as_dict())
        return stats


class RentalMedianLoader:
    """
    Load rental medians with insert-or-ignore on the natural key.

    No quality comparison: a key that already exists is counted as skipped.
    """

    def __init__(self, repository: Optional[RentalMedianRepository] = None):
        self.repository = repository or RentalMedianRepository()
        logger.debug("rental_median_loader_initialized")

    def persist(self, session: Session, medians: Sequence[RentalMedianRecord]) -> RunStatistics:
        """
        Persist rental medians.

        Args:
            session: Database session
            medians: Parsed rental medians

        Returns:
            RunStatistics (inserted / skipped / errors; never updated)
        """
        logger.info("rental_median_write_started", records=len(medians))
        stats = RunStatistics()

        for median in medians:
            try:
                with session.begin_nested():
                    inserted = self.repository.insert_if_absent(session, median)
            except RECORD_ERRORS as e:
                stats.errors += 1
                logger.warning(
                    "rental_median_write_failed",
                    postcode=median.postcode,
                    bedrooms=median.bedrooms,
                    error=str(e),
                    error_type=type(e).__name__
                )
                continue

            if inserted:
                stats.inserted += 1
            else:
                stats.skipped += 1
                logger.debug(
                    "rental_median_skipped",
                    postcode=median.postcode,
                    bedrooms=median.bedrooms,
                    period=median.period
                )

        logger.info("rental_median_write_complete", **stats.as_dict())
        return stats


def persist(session: Session, observations: Sequence[PropertyObservation]) -> RunStatistics:
    """Module-level shortcut for PropertyLoader().persist."""
    return PropertyLoader().persist(session, observations)


def persist_rental_medians(session: Session, medians: Sequence[RentalMedianRecord]) -> RunStatistics:
    """Module-level shortcut for RentalMedianLoader().persist."""
    return RentalMedianLoader().persist(session, medians)
