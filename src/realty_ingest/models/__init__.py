"""
Record Model

Normalized observation types shared by the enrichment and persistence stages.
"""
from src.realty_ingest.models.observation import (
    State,
    PropertyType,
    DataQuality,
    TIER_SCORES,
    SourceMetadata,
    PropertyObservation,
    RentalMedianRecord,
)
from src.realty_ingest.models.statistics import RunStatistics

__all__ = [
    "State",
    "PropertyType",
    "DataQuality",
    "TIER_SCORES",
    "SourceMetadata",
    "PropertyObservation",
    "RentalMedianRecord",
    "RunStatistics",
]
