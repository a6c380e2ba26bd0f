"""
Property type normalisation from free-text source descriptions.
"""
from typing import Optional

from src.realty_ingest.models.observation import PropertyType

# Checked top to bottom; "townhouse" must precede "house"
PROPERTY_TYPE_KEYWORDS = [
    (PropertyType.TOWNHOUSE, ('townhouse', 'terrace')),
    (PropertyType.HOUSE, ('house', 'dwelling')),
    (PropertyType.UNIT, ('unit', 'apartment', 'flat')),
    (PropertyType.VACANT_LAND, ('vacant', 'land')),
    (PropertyType.COMMERCIAL, ('commercial', 'retail', 'office')),
]


def parse_property_type(nature: Optional[str]) -> PropertyType:
    """
    Map a source description such as "Residential - House" to a PropertyType.

    Matching is case-insensitive substring search; anything unrecognised is
    PropertyType.OTHER.
    """
    if not nature:
        return PropertyType.OTHER

    lower = str(nature).lower()
    for property_type, keywords in PROPERTY_TYPE_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return property_type

    return PropertyType.OTHER
