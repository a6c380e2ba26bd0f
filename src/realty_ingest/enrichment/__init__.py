"""
Enrichment Package

Fills missing attributes and derives financial metrics on observations.
"""
from src.realty_ingest.enrichment.estimators import (
    estimate_bedrooms,
    calculate_yield,
    gross_yield,
    bedrooms_for,
)
from src.realty_ingest.enrichment.rental_matcher import (
    DatabaseRentalLookup,
    RentalLookup,
    match_rental,
)
from src.realty_ingest.enrichment.pipeline import EnrichmentPipeline, enrich

__all__ = [
    "estimate_bedrooms",
    "calculate_yield",
    "gross_yield",
    "bedrooms_for",
    "DatabaseRentalLookup",
    "RentalLookup",
    "match_rental",
    "EnrichmentPipeline",
    "enrich",
]
