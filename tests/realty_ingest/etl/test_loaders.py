"""
Tests for ETL Loaders

Covers insert / overwrite / skip decisions, the sale ledger, per-record error
isolation and rental median idempotency.
"""
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from src.realty_ingest.db.models import Property, RentalMedian, SaleHistory
from src.realty_ingest.db.repository import PropertyRepository
from src.realty_ingest.etl.loaders import (
    PropertyLoader,
    RentalMedianLoader,
    persist,
    persist_rental_medians,
)
from src.realty_ingest.models.observation import DataQuality, RentalMedianRecord, State
from src.realty_ingest.models.statistics import RunStatistics


def _properties(session):
    return list(session.execute(select(Property)).scalars().all())


def _sales(session):
    return list(session.execute(select(SaleHistory)).scalars().all())


class TestPropertyLoaderInsert:
    """Tests for first-time observations"""

    def test_insert_new_property(self, test_db, make_observation):
        """An unseen property is inserted with its provenance"""
        stats = PropertyLoader().persist(test_db, [make_observation()])

        assert stats == RunStatistics(inserted=1)
        [prop] = _properties(test_db)
        assert prop.external_id == "NSW-1001"
        assert prop.price == 800_000
        assert prop.data_quality == "individual"
        assert prop.quality_score() == Decimal("90")

    def test_insert_records_sale(self, test_db, make_observation):
        """A first observation with price and date writes one ledger row"""
        persist(test_db, [make_observation()])

        [sale] = _sales(test_db)
        assert sale.sale_price == 800_000
        assert sale.sale_date == date(2024, 3, 15)
        assert sale.data_source == "nsw_sales"

    def test_sale_keeps_settlement_and_contract_dates(self, test_db, make_observation):
        """The ledger row carries the settlement and contract dates"""
        persist(test_db, [make_observation(contract_date=date(2024, 2, 10))])

        [sale] = _sales(test_db)
        assert sale.settlement_date == date(2024, 3, 15)
        assert sale.contract_date == date(2024, 2, 10)

    def test_insert_without_sale_date_writes_no_ledger_row(self, test_db, make_observation):
        """No ledger row without a sale date"""
        persist(test_db, [make_observation(sale_date=None)])

        assert len(_properties(test_db)) == 1
        assert _sales(test_db) == []

    def test_insert_without_postcode_or_external_id(self, test_db, make_observation):
        """Records that cannot be matched are always inserted"""
        obs = make_observation(external_id=None, postcode=None, sale_date=None)

        stats = persist(test_db, [obs])

        assert stats.inserted == 1


class TestPropertyLoaderConflicts:
    """Tests for quality-based conflict resolution"""

    def test_better_data_overwrites(self, test_db, make_observation):
        """Individual x 0.8 (80) replaces Aggregated x 0.25 (12.5)"""
        persist(test_db, [make_observation(
            data_quality=DataQuality.AGGREGATED, confidence="0.25", sale_price=700_000, source_id="suburb_medians"
        )])
        stats = persist(test_db, [make_observation(
            data_quality=DataQuality.INDIVIDUAL, confidence="0.8", sale_price=750_000
        )])

        assert stats == RunStatistics(updated=1)
        [prop] = _properties(test_db)
        assert prop.price == 750_000
        assert prop.data_quality == "individual"
        assert prop.data_source == "nsw_sales"
        assert prop.quality_score() == Decimal("80")

    def test_estimated_replaced_by_individual(self, test_db, make_observation):
        """Estimated x 0.5 (12.5) loses to Individual x 0.8 (80 > 13.75)"""
        persist(test_db, [make_observation(data_quality=DataQuality.ESTIMATED, confidence="0.5")])
        stats = persist(test_db, [make_observation(confidence="0.8")])

        assert stats == RunStatistics(updated=1)

    def test_lower_confidence_same_tier_skips(self, test_db, make_observation):
        """Individual x 0.85 (85) is kept against Individual x 0.8 (80 < 93.5)"""
        persist(test_db, [make_observation(confidence="0.85")])
        stats = persist(test_db, [make_observation(confidence="0.8", sale_price=1)])

        assert stats == RunStatistics(skipped=1)
        [prop] = _properties(test_db)
        assert prop.price == 800_000

    def test_overwrite_appends_sale(self, test_db, make_observation):
        """An overwrite with a new sale adds a second ledger row"""
        persist(test_db, [make_observation(data_quality=DataQuality.ESTIMATED, confidence="0.5")])
        persist(test_db, [make_observation(sale_price=950_000, sale_date=date(2025, 2, 1))])

        assert len(_sales(test_db)) == 2

    def test_near_equal_data_skips(self, test_db, make_observation):
        """Listing x 0.9444 (about 85) does not replace Individual x 0.8 (80)"""
        persist(test_db, [make_observation(confidence="0.8", sale_price=750_000)])
        stats = persist(test_db, [make_observation(
            data_quality=DataQuality.LISTING, confidence="0.9444", sale_price=760_000, source_id="listings"
        )])

        assert stats == RunStatistics(skipped=1)
        [prop] = _properties(test_db)
        assert prop.price == 750_000
        assert prop.data_source == "nsw_sales"
        assert len(_sales(test_db)) == 1

    def test_exact_margin_skips(self, test_db, make_observation):
        """Individual x 0.55 (55) vs Aggregated x 1 (50): 55 is not strictly above 50 x 1.1"""
        persist(test_db, [make_observation(data_quality=DataQuality.AGGREGATED, confidence="1")])
        stats = persist(test_db, [make_observation(data_quality=DataQuality.INDIVIDUAL, confidence="0.55")])

        assert stats.skipped == 1

    def test_legacy_row_without_tier_is_replaced(self, test_db, make_observation):
        """A stored row with no tier scores zero and loses to any real data"""
        PropertyRepository().create(
            test_db,
            external_id="NSW-1001",
            address="10 Smith Street",
            suburb="Surry Hills",
            state="NSW",
            postcode="2010",
            data_quality=None,
            confidence_score=None,
        )

        stats = persist(test_db, [make_observation(data_quality=DataQuality.ESTIMATED, confidence="0.1")])

        assert stats.updated == 1

    def test_match_by_address_when_external_id_differs(self, test_db, make_observation):
        """Falls back to address + postcode + state"""
        persist(test_db, [make_observation(external_id=None, data_quality=DataQuality.ESTIMATED, confidence="0.5")])
        stats = persist(test_db, [make_observation(external_id="NEW-ID")])

        assert stats.updated == 1
        [prop] = _properties(test_db)
        assert prop.external_id == "NEW-ID"

    def test_external_id_is_scoped_by_state(self, test_db, make_observation):
        """The same external id in another state is a different property"""
        persist(test_db, [make_observation()])
        stats = persist(test_db, [make_observation(state=State.VIC, postcode="3000")])

        assert stats.inserted == 1
        assert len(_properties(test_db)) == 2

    def test_same_property_twice_in_one_batch(self, test_db, make_observation):
        """Records keying to the same property are serialized within a batch"""
        stats = persist(test_db, [make_observation(), make_observation()])

        assert stats == RunStatistics(inserted=1, skipped=1)


class TestSaleHistoryIdempotency:
    """Tests for the append-only sale ledger"""

    def test_reingesting_same_sale_never_duplicates(self, test_db, make_observation):
        """The same sale observed again does not add a ledger row"""
        persist(test_db, [make_observation(data_quality=DataQuality.ESTIMATED, confidence="0.5")])
        persist(test_db, [make_observation()])  # overwrite, same sale
        persist(test_db, [make_observation()])  # skip

        assert len(_sales(test_db)) == 1


class TestPropertyLoaderErrors:
    """Tests for per-record error isolation"""

    def test_store_error_counts_and_batch_continues(self, test_db, make_observation):
        """One failing write is rolled back and the rest of the batch persists"""
        loader = PropertyLoader()
        original_create = loader.repository.create
        calls = {"n": 0}

        def flaky_create(session, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("INSERT", {}, Exception("server closed the connection"))
            return original_create(session, **kwargs)

        observations = [
            make_observation(external_id="A", address="1 A Street"),
            make_observation(external_id="B", address="2 B Street"),
            make_observation(external_id="C", address="3 C Street"),
        ]

        with patch.object(loader.repository, "create", side_effect=flaky_create):
            stats = loader.persist(test_db, observations)

        assert stats == RunStatistics(inserted=2, errors=1)
        assert sorted(p.external_id for p in _properties(test_db)) == ["A", "C"]

    def test_failed_sale_append_rolls_back_property(self, test_db, make_observation):
        """A failure after the property insert leaves nothing behind for that record"""
        loader = PropertyLoader()

        with patch.object(
            loader.sale_history,
            "append",
            side_effect=OperationalError("INSERT", {}, Exception("timeout")),
        ):
            stats = loader.persist(test_db, [make_observation()])

        assert stats == RunStatistics(errors=1)
        assert _properties(test_db) == []

    def test_counters_sum_to_input(self, test_db, make_observation):
        """inserted + updated + skipped + errors equals the records processed"""
        observations = [
            make_observation(external_id="A", address="1 A Street"),
            make_observation(external_id="A", address="1 A Street"),
            make_observation(external_id="B", address="2 B Street"),
        ]

        stats = persist(test_db, observations)

        assert stats.processed == len(observations)


class TestRentalMedianLoader:
    """Tests for rental median persistence"""

    def _median(self, rent=650, postcode="2000"):
        return RentalMedianRecord(
            state=State.NSW,
            postcode=postcode,
            suburb="Sydney",
            bedrooms=2,
            median_weekly_rent=rent,
            period=date(2024, 12, 1),
        )

    def test_same_median_twice(self, test_db):
        """A repeated natural key is skipped, not an error"""
        stats = RentalMedianLoader().persist(test_db, [self._median(), self._median(rent=700)])

        assert stats == RunStatistics(inserted=1, skipped=1)
        [row] = list(test_db.execute(select(RentalMedian)).scalars().all())
        assert row.median_weekly_rent == 650

    def test_rerun_is_noop(self, test_db):
        """Ingesting the same batch twice inserts nothing the second time"""
        batch = [self._median(postcode="2000"), self._median(postcode="2010")]

        first = persist_rental_medians(test_db, batch)
        second = persist_rental_medians(test_db, batch)

        assert first == RunStatistics(inserted=2)
        assert second == RunStatistics(skipped=2)

    def test_store_error_counted(self, test_db):
        """A failed insert is an error and the batch continues"""
        loader = RentalMedianLoader()
        original = loader.repository.insert_if_absent

        def flaky(session, median):
            if median.postcode == "2000":
                raise OperationalError("INSERT", {}, Exception("timeout"))
            return original(session, median)

        with patch.object(loader.repository, "insert_if_absent", side_effect=flaky):
            stats = loader.persist(test_db, [self._median(postcode="2000"), self._median(postcode="2010")])

        assert stats == RunStatistics(inserted=1, errors=1)
