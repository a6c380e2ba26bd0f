"""
Enrichment pipeline.

Applies bedroom estimation, rental matching and yield calculation, in that
order, to every observation in a batch.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from src.realty_ingest.enrichment.estimators import estimate_bedrooms, calculate_yield
from src.realty_ingest.enrichment.rental_matcher import RentalLookup, match_rental
from src.realty_ingest.models.observation import PropertyObservation
from src.realty_ingest.models.statistics import RunStatistics
from src.realty_ingest.utils.logger import get_logger

logger = get_logger(__name__)


class EnrichmentPipeline:
    """
    Composes the three per-record transforms.

    Transforms have no cross-record effects. A record whose rental lookup
    fails is dropped from the output and counted as an error on the supplied
    RunStatistics; the rest of the batch carries on.
    """

    def enrich_one(self, observation: PropertyObservation, rental_lookup: RentalLookup) -> PropertyObservation:
        record = estimate_bedrooms(observation)
        record = match_rental(record, rental_lookup)
        return calculate_yield(record)

    def enrich(
        self,
        observations: Sequence[PropertyObservation],
        rental_lookup: RentalLookup,
        stats: Optional[RunStatistics] = None,
    ) -> List[PropertyObservation]:
        """
        Enrich a batch of observations.

        Args:
            observations: Normalized observations, in input order
            rental_lookup: Read-only rental median lookup
            stats: Counters to charge lookup failures against

        Returns:
            Enriched observations in input order (failed records omitted)
        """
        logger.info("enrichment_started", records=len(observations))

        enriched: List[PropertyObservation] = []
        failed = 0
        rent_matched = 0

        for observation in observations:
            try:
                record = self.enrich_one(observation, rental_lookup)
            except (SQLAlchemyError, TimeoutError) as e:
                failed += 1
                logger.warning(
                    "enrichment_lookup_failed",
                    address=observation.address,
                    postcode=observation.postcode,
                    error=str(e),
                    error_type=type(e).__name__
                )
                continue

            enriched.append(record)
            if observation.weekly_rent is None and record.weekly_rent is not None:
                rent_matched += 1

        if stats is not None:
            stats.errors += failed

        logger.info(
            "enrichment_complete",
            records=len(enriched),
            failed=failed,
            bedrooms_missing=sum(1 for o in observations if o.bedrooms is None),
            rent_matched=rent_matched,
            with_yield=sum(1 for r in enriched if r.rental_yield is not None)
        )
        return enriched


def enrich(
    observations: Sequence[PropertyObservation],
    rental_lookup: RentalLookup,
    stats: Optional[RunStatistics] = None,
) -> List[PropertyObservation]:
    """Module-level shortcut for EnrichmentPipeline().enrich."""
    return EnrichmentPipeline().enrich(observations, rental_lookup, stats)
