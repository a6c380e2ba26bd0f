"""
Pure enrichment transforms.

Each function takes an observation and returns a new one; inputs are never
mutated.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from src.realty_ingest.models.observation import PropertyObservation, PropertyType
from src.realty_ingest.utils.logger import get_logger

logger = get_logger(__name__)

# Confidence multiplier applied whenever bedrooms are inferred
BEDROOM_ESTIMATE_CONFIDENCE = Decimal("0.7")

DEFAULT_BEDROOMS = 3
WEEKS_PER_YEAR = 52
YIELD_QUANTUM = Decimal("0.01")

# (upper price bound exclusive, bedrooms) per category; the last entry is the default
BEDROOM_PRICE_BANDS = {
    PropertyType.UNIT: [(400_000, 1), (600_000, 2), (None, 2)],
    PropertyType.HOUSE: [(500_000, 2), (800_000, 3), (1_200_000, 4), (None, 4)],
    PropertyType.TOWNHOUSE: [(600_000, 2), (None, 3)],
    PropertyType.VACANT_LAND: [(None, 0)],
}


def bedrooms_for(property_type: PropertyType, sale_price: Optional[int]) -> int:
    """
    Look up the estimated bedroom count for a category and price.

    Args:
        property_type: Property category
        sale_price: Sale price, or None

    Returns:
        Estimated bedroom count
    """
    bands = BEDROOM_PRICE_BANDS.get(property_type)
    if bands is None:
        return DEFAULT_BEDROOMS

    for upper, bedrooms in bands:
        if upper is None:
            return bedrooms
        if sale_price is not None and sale_price < upper:
            return bedrooms

    return DEFAULT_BEDROOMS


def estimate_bedrooms(observation: PropertyObservation) -> PropertyObservation:
    """
    Fill in a missing bedroom count from category and price.

    Reduces confidence by BEDROOM_ESTIMATE_CONFIDENCE when it fires; a no-op
    when bedrooms are already known.
    """
    if observation.bedrooms is not None:
        return observation

    estimated = bedrooms_for(observation.property_type, observation.sale_price)
    meta = observation.source_metadata
    new_meta = meta.model_copy(
        update={"confidence_score": meta.confidence_score * BEDROOM_ESTIMATE_CONFIDENCE}
    )

    logger.debug(
        "bedrooms_estimated",
        address=observation.address,
        property_type=observation.property_type.value,
        sale_price=observation.sale_price,
        bedrooms=estimated
    )

    return observation.model_copy(update={"bedrooms": estimated, "source_metadata": new_meta})


def gross_yield(sale_price: Optional[int], weekly_rent: Optional[int]) -> Optional[Decimal]:
    """
    Gross rental yield as a percentage: weekly_rent * 52 / price * 100.

    Returns:
        Yield rounded to two decimal places, or None when price <= 0 or an
        input is missing
    """
    if sale_price is None or weekly_rent is None or sale_price <= 0:
        return None

    annual_rent = Decimal(weekly_rent) * WEEKS_PER_YEAR
    pct = annual_rent / Decimal(sale_price) * Decimal(100)
    return pct.quantize(YIELD_QUANTUM, rounding=ROUND_HALF_UP)


def calculate_yield(observation: PropertyObservation) -> PropertyObservation:
    """Set rental_yield from sale price and weekly rent, or leave it unset."""
    yield_pct = gross_yield(observation.sale_price, observation.weekly_rent)

    if yield_pct is not None:
        logger.debug("yield_calculated", address=observation.address, rental_yield=str(yield_pct))

    return observation.model_copy(update={"rental_yield": yield_pct})
