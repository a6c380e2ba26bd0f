"""
Transformers Package

Normalisation helpers used by the source parsers.
"""
from src.realty_ingest.transformers.address_standardizer import (
    format_address,
    normalize_locality,
    normalize_postcode,
)
from src.realty_ingest.transformers.property_type import parse_property_type

__all__ = [
    "format_address",
    "normalize_locality",
    "normalize_postcode",
    "parse_property_type",
]
