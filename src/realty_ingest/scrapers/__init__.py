"""
Scrapers Package

Fetch and parse collaborators for the NSW property sales and rental bond
sources.
"""

from .nsw_sales_scraper import NswSalesScraper
from .nsw_rental_scraper import NswRentalScraper

__all__ = [
    "NswSalesScraper",
    "NswRentalScraper",
]
