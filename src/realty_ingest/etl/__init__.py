"""
ETL Package

Conflict-resolving persistence of observations and rental medians.
"""
from src.realty_ingest.etl.loaders import (
    PropertyLoader,
    RentalMedianLoader,
    WriteOutcome,
    persist,
    persist_rental_medians,
)

__all__ = [
    "PropertyLoader",
    "RentalMedianLoader",
    "WriteOutcome",
    "persist",
    "persist_rental_medians",
]
