"""
NSW Rental Bond Scraper

Downloads the NSW Fair Trading rental bond workbook and parses per-postcode
median weekly rents by bedroom count.
"""
import io
import zipfile
from datetime import date
from typing import List, Optional

import pandas as pd
import requests
from pydantic import ValidationError

from config.settings import settings
from src.realty_ingest.db.utils import parse_money
from src.realty_ingest.errors import SourceFetchError
from src.realty_ingest.ingestion.raw_data import RawData
from src.realty_ingest.models.observation import RentalMedianRecord, State
from src.realty_ingest.scrapers.http_client import download
from src.realty_ingest.transformers.address_standardizer import (
    normalize_locality,
    normalize_postcode,
)
from src.realty_ingest.utils.logger import get_logger

logger = get_logger(__name__)

SOURCE_ID = "nsw_rentals"

# Postcode, Suburb, Bedrooms, Median weekly rent; matched by position since
# header wording changes between monthly releases
RENTAL_COLUMN_COUNT = 4


class NswRentalScraper:
    """Fetch and parse the NSW rental bond XLSX."""

    def __init__(self, url: Optional[str] = None, timeout: Optional[int] = None):
        self.url = url or settings.nsw_rentals_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.session = requests.Session()
        logger.info("nsw_rental_scraper_initialized", url=self.url)

    def fetch(self) -> RawData:
        """Download the workbook as a BYTES payload."""
        return RawData.from_bytes(download(self.session, self.url, SOURCE_ID, timeout=self.timeout))

    def parse(self, raw: RawData, period: Optional[date] = None) -> List[RentalMedianRecord]:
        """
        Parse the first sheet of the workbook.

        Args:
            raw: BYTES payload from fetch()
            period: Period the medians represent (defaults to today)

        Returns:
            Rental medians in sheet order
        """
        content = raw.as_bytes()
        logger.info("parsing_rental_workbook", bytes=len(content))

        try:
            df = pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=object)
        except (ValueError, OSError, zipfile.BadZipFile) as e:
            raise SourceFetchError(SOURCE_ID, f"unreadable workbook: {e}") from e

        return parse_rental_frame(df, period or date.today())


def parse_rental_frame(
    df: pd.DataFrame,
    period: date,
    source_id: str = SOURCE_ID,
) -> List[RentalMedianRecord]:
    """
    Convert a rental bond sheet into RentalMedianRecord values.

    Rows with a missing or unparseable postcode, bedroom count or rent are
    skipped.

    Raises:
        SourceFetchError: The sheet has fewer than four columns
    """
    if df.shape[1] < RENTAL_COLUMN_COUNT:
        raise SourceFetchError(source_id, f"expected {RENTAL_COLUMN_COUNT} columns, got {df.shape[1]}")

    medians: List[RentalMedianRecord] = []
    skipped = 0

    for values in df.iloc[:, :RENTAL_COLUMN_COUNT].itertuples(index=False, name=None):
        postcode_raw, suburb_raw, bedrooms_raw, rent_raw = values

        postcode = normalize_postcode(postcode_raw)
        bedrooms = parse_money(bedrooms_raw)
        rent = parse_money(rent_raw)

        if postcode is None or bedrooms is None or rent is None:
            skipped += 1
            continue

        try:
            medians.append(
                RentalMedianRecord(
                    state=State.NSW,
                    postcode=postcode,
                    suburb=normalize_locality(suburb_raw),
                    bedrooms=bedrooms,
                    median_weekly_rent=rent,
                    period=period,
                    data_source=source_id,
                )
            )
        except ValidationError as e:
            skipped += 1
            logger.debug("rental_row_invalid", postcode=postcode, error=str(e))

    logger.info("rental_workbook_parsed", records=len(medians), skipped=skipped, period=str(period))
    return medians
