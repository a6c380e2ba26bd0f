"""
Provenance Quality Scoring

Effective quality score = tier score x confidence multiplier. The score is
never persisted; it is recomputed from the stored tier and confidence each
time an incoming observation is compared against a stored property.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from src.realty_ingest.models.observation import DataQuality

# New data must beat existing data by more than 10% before it overwrites.
HYSTERESIS_MARGIN = Decimal("1.1")

CONFIDENCE_QUANTUM = Decimal("0.0001")


def quantize_confidence(confidence: Decimal) -> Decimal:
    """Round a confidence multiplier to the precision of the store column."""
    return Decimal(confidence).quantize(CONFIDENCE_QUANTUM, rounding=ROUND_HALF_UP)


def stored_quality_score(
    data_quality: Optional[Union[str, DataQuality]],
    confidence_score: Optional[Decimal],
) -> Decimal:
    """
    Quality score of a stored row.

    Args:
        data_quality: Stored tier value; None for legacy rows
        confidence_score: Stored confidence; None is treated as 1

    Returns:
        Tier score x confidence, 0 when no tier is recorded
    """
    if data_quality is None:
        return Decimal(0)

    tier = DataQuality(data_quality)
    confidence = Decimal(1) if confidence_score is None else Decimal(confidence_score)
    return Decimal(tier.score) * confidence


def should_replace(existing_score: Decimal, new_score: Decimal) -> bool:
    """
    Decide whether incoming data overwrites a stored property.

    Strict inequality: a new score exactly equal to existing x 1.1 does not win.
    """
    return new_score > existing_score * HYSTERESIS_MARGIN
