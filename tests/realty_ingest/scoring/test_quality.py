"""
Tests for quality scoring and the overwrite decision
"""
from decimal import Decimal

from src.realty_ingest.models.observation import DataQuality
from src.realty_ingest.scoring.quality import (
    quantize_confidence,
    should_replace,
    stored_quality_score,
)


class TestStoredQualityScore:
    """Tests for stored_quality_score"""

    def test_tier_times_confidence(self):
        """Stored score is tier score times stored confidence"""
        assert stored_quality_score("aggregated", Decimal("0.25")) == Decimal("12.5")

    def test_missing_tier_scores_zero(self):
        """Legacy rows without a tier score zero"""
        assert stored_quality_score(None, Decimal("0.9")) == Decimal(0)

    def test_missing_confidence_counts_as_one(self):
        """A missing confidence does not discount the tier"""
        assert stored_quality_score(DataQuality.LISTING, None) == Decimal(90)


class TestShouldReplace:
    """Tests for the 10% hysteresis rule"""

    def test_much_better_data_overwrites(self):
        """80 beats 12.5 by far more than 10%"""
        assert should_replace(Decimal("12.5"), Decimal("80")) is True

    def test_slightly_better_data_skips(self):
        """85 does not beat 80 by more than 10%"""
        assert should_replace(Decimal("80"), Decimal("85")) is False

    def test_exact_margin_does_not_overwrite(self):
        """55 is exactly 50 x 1.1 and the comparison is strict"""
        assert should_replace(Decimal("50"), Decimal("55")) is False

    def test_just_over_margin_overwrites(self):
        """Anything above existing x 1.1 wins"""
        assert should_replace(Decimal("50"), Decimal("55.01")) is True

    def test_anything_positive_beats_zero(self):
        """A legacy row with no tier is replaced by any real data"""
        assert should_replace(Decimal(0), Decimal("0.01")) is True
        assert should_replace(Decimal(0), Decimal(0)) is False


class TestQuantizeConfidence:
    """Tests for quantize_confidence"""

    def test_rounds_to_four_places(self):
        """Repeated multipliers are rounded to the column precision"""
        assert quantize_confidence(Decimal("0.9") * Decimal("0.7") * Decimal("0.85")) == Decimal("0.5355")
        assert quantize_confidence(Decimal("0.123456")) == Decimal("0.1235")
