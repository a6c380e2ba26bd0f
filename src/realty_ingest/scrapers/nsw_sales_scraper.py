"""
NSW Property Sales Scraper

Downloads the NSW Valuer General bulk sales archive (a ZIP holding a CSV) and
parses it into PropertyObservation records.
"""
import zipfile
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import pandas as pd
import requests
from pydantic import ValidationError

from config.settings import settings
from src.realty_ingest.db.utils import parse_date_string, parse_money
from src.realty_ingest.errors import SourceFetchError
from src.realty_ingest.ingestion.raw_data import RawData
from src.realty_ingest.models.observation import (
    DataQuality,
    PropertyObservation,
    SourceMetadata,
    State,
)
from src.realty_ingest.scrapers.http_client import download
from src.realty_ingest.transformers.address_standardizer import (
    format_address,
    normalize_locality,
    normalize_postcode,
)
from src.realty_ingest.transformers.property_type import parse_property_type
from src.realty_ingest.utils.logger import get_logger

logger = get_logger(__name__)

SOURCE_ID = "nsw_sales"

# Government records: individual tier, high confidence
SALES_CONFIDENCE = Decimal("0.9")

# Row errors logged in detail; the rest are only counted
MAX_LOGGED_PARSE_ERRORS = 10

REQUIRED_COLUMNS = [
    "Property ID",
    "Property unit number",
    "Property house number",
    "Property street name",
    "Property locality",
    "Property post code",
    "Purchase price",
    "Settlement date",
    "Contract date",
    "Nature of property",
]


class NswSalesScraper:
    """
    Fetch and parse NSW bulk property sales.

    fetch() returns a FILE payload pointing at the extracted CSV; parse()
    turns that payload into observations.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        temp_dir: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """
        Initialize the NSW sales scraper.

        Args:
            url: Override the archive URL (for testing)
            temp_dir: Directory for the downloaded archive and extracted CSV
            timeout: HTTP timeout in seconds
        """
        self.url = url or settings.nsw_sales_url
        self.temp_dir = Path(temp_dir or settings.temp_dir)
        self.timeout = timeout or settings.http_timeout_seconds
        self.session = requests.Session()
        logger.info("nsw_sales_scraper_initialized", url=self.url, temp_dir=str(self.temp_dir))

    def fetch(self) -> RawData:
        """
        Download the sales archive and extract its CSV.

        Returns:
            RawData FILE payload with the CSV path

        Raises:
            SourceFetchError: Download failed, archive is corrupt or holds no CSV
        """
        content = download(self.session, self.url, SOURCE_ID, timeout=self.timeout)

        self.temp_dir.mkdir(parents=True, exist_ok=True)
        zip_path = self.temp_dir / "nsw_sales.zip"
        zip_path.write_bytes(content)
        logger.info("sales_archive_saved", path=str(zip_path))

        return RawData.from_file(extract_csv_from_zip(zip_path))

    def parse(self, raw: RawData, source_id: str = SOURCE_ID) -> List[PropertyObservation]:
        """
        Parse the extracted CSV into observations.

        Args:
            raw: FILE payload from fetch()
            source_id: Source identifier stamped on each observation

        Returns:
            Observations in file order (unparseable rows dropped)
        """
        csv_path = raw.as_file_path()
        logger.info("parsing_sales_csv", path=str(csv_path))

        # Lines with extra fields are collected here and dropped from the frame
        malformed: List[List[str]] = []

        try:
            # Keep every column as text: IDs and postcodes lose leading zeros otherwise
            df = pd.read_csv(
                csv_path,
                dtype=str,
                keep_default_na=False,
                engine="python",
                on_bad_lines=malformed.append,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, OSError) as e:
            raise SourceFetchError(source_id, f"unreadable sales CSV {csv_path}: {e}") from e

        for fields in malformed[:MAX_LOGGED_PARSE_ERRORS]:
            logger.warning(
                "sales_line_malformed",
                property_id=fields[0] if fields else None,
                fields=len(fields)
            )

        return parse_sales_frame(df, source_id, parse_errors=len(malformed))


def extract_csv_from_zip(zip_path: Path) -> Path:
    """
    Extract the first .csv member of a ZIP next to the archive.

    Raises:
        SourceFetchError: Archive is not a ZIP or contains no CSV
    """
    try:
        with zipfile.ZipFile(zip_path) as archive:
            for name in archive.namelist():
                if name.lower().endswith(".csv"):
                    extracted = Path(archive.extract(name, path=zip_path.parent))
                    logger.info("sales_csv_extracted", member=name, path=str(extracted))
                    return extracted
    except zipfile.BadZipFile as e:
        raise SourceFetchError(SOURCE_ID, f"corrupt archive {zip_path}: {e}") from e

    raise SourceFetchError(SOURCE_ID, f"no CSV file found in {zip_path}")


def parse_sales_frame(
    df: pd.DataFrame,
    source_id: str = SOURCE_ID,
    parse_errors: int = 0,
) -> List[PropertyObservation]:
    """
    Convert a NSW sales DataFrame into PropertyObservation records.

    Rows failing validation are dropped; the first few are logged in detail.
    An unparseable price, settlement or contract date leaves that field unset.

    Args:
        df: Sales rows, all columns as text
        source_id: Source identifier stamped on each observation
        parse_errors: Lines already rejected while reading the file

    Raises:
        SourceFetchError: A required column is missing
    """
    missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
    if missing:
        raise SourceFetchError(source_id, f"missing columns: {', '.join(missing)}")

    fetched_at = datetime.now(timezone.utc)
    observations: List[PropertyObservation] = []

    for idx, row in enumerate(df.to_dict("records")):
        try:
            observations.append(_row_to_observation(row, source_id, fetched_at))
        except ValidationError as e:
            parse_errors += 1
            if parse_errors <= MAX_LOGGED_PARSE_ERRORS:
                logger.warning(
                    "sales_row_parse_failed",
                    row=idx,
                    property_id=row.get("Property ID"),
                    error=str(e)
                )

    logger.info(
        "sales_csv_parsed",
        records=len(observations),
        parse_errors=parse_errors,
        with_price=sum(1 for o in observations if o.sale_price is not None)
    )
    return observations


def _row_to_observation(row: dict, source_id: str, fetched_at: datetime) -> PropertyObservation:
    return PropertyObservation(
        external_id=str(row["Property ID"]).strip() or None,
        address=format_address(
            row["Property unit number"],
            row["Property house number"],
            row["Property street name"],
        ),
        suburb=normalize_locality(row["Property locality"]),
        state=State.NSW,
        postcode=normalize_postcode(row["Property post code"]),
        property_type=parse_property_type(row["Nature of property"]),
        sale_price=parse_money(row["Purchase price"]),
        sale_date=parse_date_string(row["Settlement date"]),
        contract_date=parse_date_string(row["Contract date"]),
        source_metadata=SourceMetadata(
            source_id=source_id,
            data_quality=DataQuality.INDIVIDUAL,
            fetched_at=fetched_at,
            confidence_score=SALES_CONFIDENCE,
        ),
    )
