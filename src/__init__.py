"""
Realty Ingest - Core Package

Batch ingestion of property sales and rental bond data: source parsing,
enrichment, and quality-aware persistence into the property store.
"""

__version__ = "0.1.0"
