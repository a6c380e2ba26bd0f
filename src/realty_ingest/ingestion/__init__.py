"""
Ingestion Package

Source payload types and the pipeline driver.
"""
from src.realty_ingest.ingestion.raw_data import PayloadKind, RawData

__all__ = [
    "PayloadKind",
    "RawData",
]
