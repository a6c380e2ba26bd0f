"""
Tests for rental matching and the enrichment pipeline
"""
from datetime import date
from decimal import Decimal
from unittest.mock import Mock, patch

from sqlalchemy.exc import OperationalError

from src.realty_ingest.db.repository import RentalMedianRepository
from src.realty_ingest.enrichment.pipeline import EnrichmentPipeline, enrich
from src.realty_ingest.enrichment.rental_matcher import DatabaseRentalLookup, match_rental
from src.realty_ingest.models.observation import PropertyType, RentalMedianRecord, State
from src.realty_ingest.models.statistics import RunStatistics


def _median(rent, period, bedrooms=2, postcode="2010"):
    return RentalMedianRecord(
        state=State.NSW,
        postcode=postcode,
        bedrooms=bedrooms,
        median_weekly_rent=rent,
        period=period,
    )


class TestMatchRental:
    """Tests for match_rental"""

    def test_match_sets_rent_and_flags_estimate(self, make_observation):
        """A matched median sets rent, flags it and multiplies confidence by 0.85"""
        lookup = Mock()
        lookup.latest.return_value = Mock(median_weekly_rent=650)

        result = match_rental(make_observation(weekly_rent=None, bedrooms=2), lookup)

        lookup.latest.assert_called_once_with(State.NSW, "2010", 2)
        assert result.weekly_rent == 650
        assert result.source_metadata.is_rental_estimated is True
        assert result.source_metadata.confidence_score == Decimal("0.765")

    def test_no_match_leaves_record(self, make_observation):
        """No median means no rent and no confidence change"""
        lookup = Mock()
        lookup.latest.return_value = None

        result = match_rental(make_observation(weekly_rent=None), lookup)

        assert result.weekly_rent is None
        assert result.source_metadata.is_rental_estimated is False
        assert result.source_metadata.confidence_score == Decimal("0.9")

    def test_existing_rent_skips_lookup(self, make_observation):
        """Observed rent is never replaced"""
        lookup = Mock()
        result = match_rental(make_observation(weekly_rent=700), lookup)

        lookup.latest.assert_not_called()
        assert result.weekly_rent == 700

    def test_missing_key_skips_lookup(self, make_observation):
        """Without postcode or bedrooms there is nothing to look up"""
        lookup = Mock()
        match_rental(make_observation(weekly_rent=None, postcode=None), lookup)
        match_rental(make_observation(weekly_rent=None, bedrooms=None), lookup)
        lookup.latest.assert_not_called()


class TestDatabaseRentalLookup:
    """Tests for the store-backed lookup"""

    def test_latest_period_wins(self, test_db):
        """The most recent period is returned for a key"""
        repo = RentalMedianRepository()
        repo.insert_if_absent(test_db, _median(600, date(2024, 6, 1)))
        repo.insert_if_absent(test_db, _median(650, date(2024, 12, 1)))
        repo.insert_if_absent(test_db, _median(900, date(2025, 1, 1), bedrooms=3))

        latest = DatabaseRentalLookup(test_db).latest(State.NSW, "2010", 2)

        assert latest.median_weekly_rent == 650

    def test_no_rows(self, test_db):
        """An unknown key returns None"""
        assert DatabaseRentalLookup(test_db).latest(State.NSW, "9999", 2) is None


class TestEnrichmentPipeline:
    """Tests for EnrichmentPipeline"""

    def test_full_chain(self, test_db, make_observation):
        """Bedrooms are estimated first so the rental match can use them"""
        RentalMedianRepository().insert_if_absent(test_db, _median(600, date(2024, 12, 1), bedrooms=3))
        obs = make_observation(
            property_type=PropertyType.HOUSE,
            sale_price=800_000,
            bedrooms=None,
            weekly_rent=None,
        )

        [result] = enrich([obs], DatabaseRentalLookup(test_db))

        assert result.bedrooms == 4
        assert result.weekly_rent is None  # no 4-bedroom median
        assert result.rental_yield is None

    def test_full_chain_with_match(self, test_db, make_observation):
        """Estimated bedrooms, matched rent and yield all land on one record"""
        RentalMedianRepository().insert_if_absent(test_db, _median(600, date(2024, 12, 1), bedrooms=3))
        obs = make_observation(
            property_type=PropertyType.HOUSE,
            sale_price=700_000,
            bedrooms=None,
            weekly_rent=None,
        )

        [result] = enrich([obs], DatabaseRentalLookup(test_db))

        assert result.bedrooms == 3
        assert result.weekly_rent == 600
        assert result.rental_yield == Decimal("4.46")
        assert result.source_metadata.confidence_score == Decimal("0.9") * Decimal("0.7") * Decimal("0.85")

    def test_lookup_failure_counts_error_and_continues(self, make_observation):
        """A failed lookup drops that record and the batch carries on"""
        lookup = Mock()
        lookup.latest.side_effect = [
            OperationalError("SELECT", {}, Exception("connection lost")),
            None,
        ]
        stats = RunStatistics()
        observations = [
            make_observation(external_id="A", weekly_rent=None),
            make_observation(external_id="B", weekly_rent=None),
        ]

        result = EnrichmentPipeline().enrich(observations, lookup, stats)

        assert [r.external_id for r in result] == ["B"]
        assert stats.errors == 1

    def test_order_preserved(self, make_observation):
        """Output keeps input order"""
        lookup = Mock()
        lookup.latest.return_value = None
        observations = [make_observation(external_id=str(i)) for i in range(5)]

        result = enrich(observations, lookup)

        assert [r.external_id for r in result] == ["0", "1", "2", "3", "4"]

    def test_rent_matched_counts_only_new_matches(self, make_observation):
        """Rents already present on input are not counted as matches"""
        lookup = Mock()
        lookup.latest.return_value = Mock(median_weekly_rent=650)
        carried = make_observation(external_id="A", weekly_rent=700)
        carried = carried.model_copy(
            update={"source_metadata": carried.source_metadata.model_copy(update={"is_rental_estimated": True})}
        )
        fresh = make_observation(external_id="B", weekly_rent=None)

        with patch("src.realty_ingest.enrichment.pipeline.logger") as mock_logger:
            EnrichmentPipeline().enrich([carried, fresh], lookup)

        summary = [c for c in mock_logger.info.call_args_list if c.args[0] == "enrichment_complete"]
        assert summary[0].kwargs["rent_matched"] == 1
