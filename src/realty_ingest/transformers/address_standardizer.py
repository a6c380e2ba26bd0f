"""
Address Standardization Transformer

Builds street addresses and normalizes postcodes and localities so that the
same property arriving from different sources keys to the same stored row.
"""
import re
from typing import Any, Optional

from src.realty_ingest.utils.logger import get_logger

logger = get_logger(__name__)

# Australian postcodes are four digits; NT postcodes carry a leading zero
POSTCODE_LENGTH = 4


def _clean_part(value: Any) -> Optional[str]:
    """Strip a single address component; None/NaN/blank become None."""
    if value is None:
        return None
    if isinstance(value, float):
        if value != value:  # NaN from pandas
            return None
        if value.is_integer():
            value = int(value)
    text = ' '.join(str(value).split())
    return text or None


def format_address(unit: Any, house_number: Any, street_name: Any) -> str:
    """
    Join address components into a single street address.

    Non-blank unit and house number precede the street name, separated by
    single spaces.

    Args:
        unit: Unit number (optional)
        house_number: House number (optional)
        street_name: Street name

    Returns:
        Formatted address, e.g. "2 10 Smith Street"
    """
    parts = [part for part in (_clean_part(unit), _clean_part(house_number)) if part]
    street = _clean_part(street_name)
    if street:
        parts.append(street)
    return ' '.join(parts)


def normalize_postcode(value: Any) -> Optional[str]:
    """
    Normalize a postcode to its four-digit string form.

    Spreadsheets often deliver postcodes as numbers (2000, 2000.0, 800), so
    numeric values are rendered without decimals and left-padded.

    Returns:
        Postcode string or None when the value is blank or not numeric
    """
    text = _clean_part(value)
    if text is None:
        return None

    digits = re.sub(r'\D', '', text)
    if not digits or len(digits) > POSTCODE_LENGTH:
        logger.debug("postcode_invalid", value=text)
        return None

    return digits.zfill(POSTCODE_LENGTH)


def normalize_locality(value: Any) -> Optional[str]:
    """Collapse whitespace and title-case a suburb name ("SURRY  HILLS" -> "Surry Hills")."""
    text = _clean_part(value)
    return text.title() if text else None
