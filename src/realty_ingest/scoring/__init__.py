"""
Scoring Module

Provenance quality scoring used for conflict resolution.
"""
from src.realty_ingest.scoring.quality import (
    HYSTERESIS_MARGIN,
    quantize_confidence,
    stored_quality_score,
    should_replace,
)

__all__ = [
    "HYSTERESIS_MARGIN",
    "quantize_confidence",
    "stored_quality_score",
    "should_replace",
]
