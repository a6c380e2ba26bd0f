"""
Ingestion pipeline driver.

Runs fetch -> parse -> enrich -> persist for each requested source and
reports a per-source success/failure summary.
"""
from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, ContextManager, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.settings import settings
from src.realty_ingest.db.repository import IngestionRunRepository
from src.realty_ingest.db.session import (
    close_connections,
    configure_engine,
    get_db_session,
    with_retry,
)
from src.realty_ingest.enrichment.pipeline import EnrichmentPipeline
from src.realty_ingest.enrichment.rental_matcher import DatabaseRentalLookup
from src.realty_ingest.errors import IngestionError, StoreUnavailableError
from src.realty_ingest.etl.loaders import PropertyLoader, RentalMedianLoader
from src.realty_ingest.models.observation import PropertyObservation, RentalMedianRecord
from src.realty_ingest.models.statistics import RunStatistics
from src.realty_ingest.scrapers.nsw_rental_scraper import NswRentalScraper
from src.realty_ingest.scrapers.nsw_sales_scraper import NswSalesScraper
from src.realty_ingest.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class SourceRunResult:
    """Outcome of one source: ok with statistics, or failed with an error."""

    source_id: str
    ok: bool
    stats: RunStatistics = field(default_factory=RunStatistics)
    records_fetched: int = 0
    error: Optional[str] = None

    def __str__(self) -> str:
        if self.ok:
            return f"{self.source_id} completed: {self.stats}"
        return f"{self.source_id} failed: {self.error}"


@with_retry(max_retries=3, retry_delay=1)
def _probe_store(session: Session) -> None:
    try:
        session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        session.rollback()
        raise


def ensure_store_available(session: Session) -> None:
    """
    Verify the property store answers before a batch is written.

    Transient connection errors are retried; if the store still cannot be
    reached the whole batch is aborted.

    Raises:
        StoreUnavailableError: Store unreachable after retries
    """
    try:
        _probe_store(session)
    except SQLAlchemyError as e:
        logger.error("store_unavailable", error=str(e), error_type=type(e).__name__)
        raise StoreUnavailableError(f"property store unreachable: {e}") from e
    logger.debug("store_available")


class IngestionPipeline:
    """Sequences the ingestion stages for the configured data sources."""

    def __init__(
        self,
        sales_scraper: NswSalesScraper | None = None,
        rental_scraper: NswRentalScraper | None = None,
        enrichment: EnrichmentPipeline | None = None,
        property_loader: PropertyLoader | None = None,
        rental_loader: RentalMedianLoader | None = None,
        session_factory: Callable[[], ContextManager[Session]] = get_db_session,
        limit: Optional[int] = None,
        track_runs: bool = True,
    ):
        self.sales_scraper = sales_scraper
        self.rental_scraper = rental_scraper
        self.enrichment = enrichment or EnrichmentPipeline()
        self.property_loader = property_loader or PropertyLoader()
        self.rental_loader = rental_loader or RentalMedianLoader()
        self.session_factory = session_factory
        self.limit = settings.limit_records if limit is None else limit
        self.track_runs = track_runs
        self.run_repository = IngestionRunRepository()

        self.source_map = {
            "nsw_sales": (self.fetch_nsw_sales, self.write_nsw_sales),
            "nsw_rentals": (self.fetch_nsw_rentals, self.write_nsw_rentals),
        }

    def truncate(self, records: list) -> list:
        """Keep the first `limit` records (zero, negative or None keeps everything)."""
        if self.limit and self.limit > 0 and len(records) > self.limit:
            logger.warning("records_limited", total=len(records), limit=self.limit)
            return records[:self.limit]
        return records

    def fetch_nsw_sales(self) -> List[PropertyObservation]:
        scraper = self.sales_scraper or NswSalesScraper()
        return scraper.parse(scraper.fetch())

    def write_nsw_sales(self, session: Session, records: Sequence[PropertyObservation]) -> RunStatistics:
        stats = RunStatistics()
        enriched = self.enrichment.enrich(records, DatabaseRentalLookup(session), stats)
        return stats.merge(self.property_loader.persist(session, enriched))

    def fetch_nsw_rentals(self) -> List[RentalMedianRecord]:
        scraper = self.rental_scraper or NswRentalScraper()
        return scraper.parse(scraper.fetch(), period=date.today())

    def write_nsw_rentals(self, session: Session, records: Sequence[RentalMedianRecord]) -> RunStatistics:
        return self.rental_loader.persist(session, records)

    def run_source(self, source_id: str) -> SourceRunResult:
        """
        Run one source end to end.

        Fetch/parse failures and an unreachable store fail the source; per-record
        failures only show up in the returned statistics.
        """
        fetch, write = self.source_map[source_id]
        logger.info("source_run_started", source_id=source_id)

        try:
            fetched = fetch()
        except IngestionError as e:
            logger.error("source_fetch_failed", source_id=source_id, error=str(e))
            return SourceRunResult(source_id=source_id, ok=False, error=str(e))

        records = self.truncate(fetched)
        logger.info("source_records_ready", source_id=source_id, fetched=len(fetched), records=len(records))

        try:
            with self.session_factory() as session:
                ensure_store_available(session)
                run_id = self._start_run(session, source_id)
                stats = write(session, records)
                self._complete_run(session, run_id, stats, len(fetched))
        except (StoreUnavailableError, SQLAlchemyError) as e:
            logger.error(
                "source_run_failed",
                source_id=source_id,
                error=str(e),
                error_type=type(e).__name__
            )
            if not isinstance(e, StoreUnavailableError):
                self._fail_run(source_id, str(e), len(fetched))
            return SourceRunResult(source_id=source_id, ok=False, records_fetched=len(fetched), error=str(e))

        logger.info("source_run_complete", source_id=source_id, summary=str(stats), **stats.as_dict())
        return SourceRunResult(source_id=source_id, ok=True, stats=stats, records_fetched=len(fetched))

    def run(self, sources: Iterable[str] | None = None) -> Dict[str, SourceRunResult]:
        """
        Run the selected sources in order.

        Unknown source names are logged and skipped.

        Returns:
            Mapping of source id to its SourceRunResult
        """
        requested = list(sources) if sources is not None else list(settings.default_sources)
        results: Dict[str, SourceRunResult] = {}

        for source_id in requested:
            if source_id not in self.source_map:
                logger.warning("unknown_source", source_id=source_id, valid=list(self.source_map))
                continue
            results[source_id] = self.run_source(source_id)

        total = RunStatistics()
        for result in results.values():
            total = total.merge(result.stats)

        logger.info(
            "ingestion_complete",
            sources=list(results),
            failed=[s for s, r in results.items() if not r.ok],
            **total.as_dict()
        )
        return results

    def _start_run(self, session: Session, source_id: str) -> Optional[int]:
        if not self.track_runs:
            return None
        return self.run_repository.create_run(session, source_id).id

    def _complete_run(self, session: Session, run_id: Optional[int], stats: RunStatistics, fetched: int):
        if run_id is None:
            return
        self.run_repository.complete_run(session, run_id, stats, records_fetched=fetched)

    def _fail_run(self, source_id: str, error: str, fetched: int):
        # The failed write was rolled back along with its run row; record the failure afresh
        if not self.track_runs:
            return
        try:
            with self.session_factory() as session:
                run = self.run_repository.create_run(session, source_id)
                self.run_repository.fail_run(session, run.id, error, records_fetched=fetched)
        except SQLAlchemyError as e:
            logger.error("ingestion_run_not_recorded", source_id=source_id, error=str(e))


def _non_negative_int(value: str) -> int:
    limit = int(value)
    if limit < 0:
        raise argparse.ArgumentTypeError(f"limit must be 0 or greater, got {limit}")
    return limit


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Property sales and rental bond ingestion")
    parser.add_argument(
        "--sources",
        nargs="+",
        default=list(settings.default_sources),
        help="Data sources to ingest (nsw_sales, nsw_rentals)",
    )
    parser.add_argument(
        "--limit",
        type=_non_negative_int,
        default=settings.limit_records,
        help="Keep only the first N records per source (0 = all)",
    )
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    if args.database_url:
        configure_engine(args.database_url)

    try:
        results = IngestionPipeline(limit=args.limit).run(args.sources)
    finally:
        close_connections()

    for result in results.values():
        logger.info("source_summary", result=str(result))

    return 0 if all(result.ok for result in results.values()) else 1


if __name__ == "__main__":
    sys.exit(main())
