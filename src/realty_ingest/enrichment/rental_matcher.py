"""
Rental Matching

Fills in weekly rent for observations that have none, using the most recent
rental median for the same (state, postcode, bedrooms) key.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from src.realty_ingest.db.repository import RentalMedianRepository
from src.realty_ingest.models.observation import PropertyObservation, State
from src.realty_ingest.utils.logger import get_logger

logger = get_logger(__name__)

# Confidence multiplier applied when rent comes from an aggregate median
RENTAL_MATCH_CONFIDENCE = Decimal("0.85")


class RentalMedianLike(Protocol):
    median_weekly_rent: int


class RentalLookup(Protocol):
    """Read-only collaborator returning the latest median for a key, or None."""

    def latest(self, state: State, postcode: str, bedrooms: int) -> Optional[RentalMedianLike]:
        ...


class DatabaseRentalLookup:
    """
    RentalLookup backed by the rental_medians table.

    Each query runs inside a SAVEPOINT so a failed or timed-out lookup leaves
    the surrounding transaction usable for the next record.
    """

    def __init__(self, session: Session, repository: Optional[RentalMedianRepository] = None):
        self.session = session
        self.repository = repository or RentalMedianRepository()

    def latest(self, state: State, postcode: str, bedrooms: int):
        with self.session.begin_nested():
            return self.repository.get_latest(self.session, state, postcode, bedrooms)


def match_rental(observation: PropertyObservation, lookup: RentalLookup) -> PropertyObservation:
    """
    Attach an estimated weekly rent from the rental lookup.

    No-op when rent is already present or when postcode or bedrooms are
    unknown. On a match the rent is flagged as estimated and confidence is
    multiplied by RENTAL_MATCH_CONFIDENCE.

    Raises:
        Whatever the lookup raises; the caller decides how to count it
    """
    if observation.weekly_rent is not None:
        return observation

    if observation.postcode is None or observation.bedrooms is None:
        logger.debug(
            "rental_match_missing_key",
            address=observation.address,
            postcode=observation.postcode,
            bedrooms=observation.bedrooms
        )
        return observation

    rental = lookup.latest(observation.state, observation.postcode, observation.bedrooms)
    if rental is None:
        logger.debug(
            "rental_match_not_found",
            address=observation.address,
            postcode=observation.postcode,
            bedrooms=observation.bedrooms
        )
        return observation

    meta = observation.source_metadata
    new_meta = meta.model_copy(
        update={
            "is_rental_estimated": True,
            "confidence_score": meta.confidence_score * RENTAL_MATCH_CONFIDENCE,
        }
    )

    logger.debug(
        "rental_matched",
        address=observation.address,
        postcode=observation.postcode,
        bedrooms=observation.bedrooms,
        weekly_rent=rental.median_weekly_rent
    )

    return observation.model_copy(
        update={"weekly_rent": rental.median_weekly_rent, "source_metadata": new_meta}
    )
