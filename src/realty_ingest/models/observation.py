"""
Property Observation Models

Pydantic models for normalized, source-agnostic property observations and
the provenance metadata attached to each one.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class State(str, Enum):
    """Australian jurisdiction codes."""

    NSW = "NSW"
    VIC = "VIC"
    QLD = "QLD"
    WA = "WA"
    SA = "SA"
    TAS = "TAS"
    ACT = "ACT"
    NT = "NT"


class PropertyType(str, Enum):
    """Property category."""

    HOUSE = "house"
    UNIT = "unit"
    TOWNHOUSE = "townhouse"
    VACANT_LAND = "vacant_land"
    COMMERCIAL = "commercial"
    OTHER = "other"


class DataQuality(str, Enum):
    """
    Provenance quality tier.

    Individual: real per-property records (government sales data)
    Listing: current market listings
    Aggregated: suburb/postcode medians
    Estimated: calculated or derived values
    """

    INDIVIDUAL = "individual"
    LISTING = "listing"
    AGGREGATED = "aggregated"
    ESTIMATED = "estimated"

    @property
    def score(self) -> int:
        """Fixed reliability score used for conflict resolution."""
        return TIER_SCORES[self]


TIER_SCORES = {
    DataQuality.INDIVIDUAL: 100,
    DataQuality.LISTING: 90,
    DataQuality.AGGREGATED: 50,
    DataQuality.ESTIMATED: 25,
}


class SourceMetadata(BaseModel):
    """
    Where an observation came from and how far it can be trusted.

    Attributes:
        source_id: Source identifier (e.g. "nsw_sales")
        data_quality: Provenance quality tier
        fetched_at: When the source data was retrieved
        is_rental_estimated: True when weekly_rent was matched rather than observed
        confidence_score: Multiplier in [0, 1] discounting the tier score
    """

    source_id: str = Field(..., description="Source identifier")
    data_quality: DataQuality = Field(..., description="Quality tier")
    fetched_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Fetch timestamp"
    )
    is_rental_estimated: bool = Field(False, description="Rent was estimated, not observed")
    confidence_score: Decimal = Field(Decimal("1"), description="Confidence multiplier", ge=0, le=1)

    @field_validator("confidence_score", mode="before")
    @classmethod
    def coerce_confidence(cls, v):
        """Route floats through str so 0.8 stays 0.8 rather than its binary expansion."""
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @property
    def quality_score(self) -> Decimal:
        """Effective quality score: tier score x confidence."""
        return Decimal(self.data_quality.score) * self.confidence_score

    class Config:
        """Pydantic model configuration."""
        str_strip_whitespace = True
        validate_assignment = True


class PropertyObservation(BaseModel):
    """
    One normalized record describing a property as seen by one source.

    Identity hints (external_id, address, postcode, state) locate the stored
    entity; attributes and financials are the values that get persisted.
    """

    # Identity hints
    external_id: Optional[str] = Field(None, description="Source-native identifier")
    address: str = Field(..., description="Free-text street address", min_length=1)
    suburb: str = Field(..., description="Suburb / locality", min_length=1)
    state: State = Field(..., description="Jurisdiction code")
    postcode: Optional[str] = Field(None, description="Postal code")

    # Attributes
    property_type: PropertyType = Field(PropertyType.OTHER, description="Property category")
    bedrooms: Optional[int] = Field(None, description="Bedroom count", ge=0)
    bathrooms: Optional[int] = Field(None, description="Bathroom count", ge=0)
    land_area_sqm: Optional[Decimal] = Field(None, description="Land area in square metres", ge=0)

    # Financials
    sale_price: Optional[int] = Field(None, description="Sale price in whole dollars")
    sale_date: Optional[date] = Field(None, description="Settlement date")
    contract_date: Optional[date] = Field(None, description="Contract exchange date (sale ledger only)")
    weekly_rent: Optional[int] = Field(None, description="Weekly rent in whole dollars")
    rental_yield: Optional[Decimal] = Field(None, description="Gross rental yield (percent)")

    # Geolocation
    latitude: Optional[Decimal] = Field(None, description="WGS84 latitude", ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, description="WGS84 longitude", ge=-180, le=180)

    # Provenance
    source_metadata: SourceMetadata

    @field_validator("external_id", "postcode")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty identifiers as missing."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def quality_score(self) -> Decimal:
        """Effective quality score of this observation."""
        return self.source_metadata.quality_score

    def has_sale(self) -> bool:
        """Check if both sale price and sale date are known."""
        return self.sale_price is not None and self.sale_date is not None

    def to_row(self) -> dict:
        """Column values for the properties table."""
        meta = self.source_metadata
        return {
            "external_id": self.external_id,
            "address": self.address,
            "suburb": self.suburb,
            "state": self.state.value,
            "postcode": self.postcode,
            "property_type": self.property_type.value,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "land_area_sqm": self.land_area_sqm,
            "price": self.sale_price,
            "sale_date": self.sale_date,
            "weekly_rent": self.weekly_rent,
            "rental_yield": self.rental_yield,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "data_source": meta.source_id,
            "data_quality": meta.data_quality.value,
            "is_rental_estimated": meta.is_rental_estimated,
            "confidence_score": meta.confidence_score,
            "fetched_at": meta.fetched_at,
        }

    class Config:
        """Pydantic model configuration."""
        str_strip_whitespace = True
        validate_assignment = True


class RentalMedianRecord(BaseModel):
    """
    Aggregate rental observation for a (state, postcode, bedrooms, period) key.

    Attributes:
        state: Jurisdiction code
        postcode: Postal code
        suburb: Optional suburb name
        bedrooms: Bedroom count
        median_weekly_rent: Median weekly rent in whole dollars
        sample_size: Number of bonds behind the median
        period: Month or quarter the median represents
        data_source: Source identifier
    """

    state: State = Field(..., description="Jurisdiction code")
    postcode: str = Field(..., description="Postal code", min_length=1)
    suburb: Optional[str] = Field(None, description="Suburb")
    bedrooms: int = Field(..., description="Bedroom count", ge=0)
    median_weekly_rent: int = Field(..., description="Median weekly rent", gt=0)
    sample_size: Optional[int] = Field(None, description="Sample size", ge=0)
    period: date = Field(..., description="Period start date")
    data_source: str = Field("nsw_rentals", description="Source identifier")

    def to_row(self) -> dict:
        """Column values for the rental_medians table."""
        return {
            "state": self.state.value,
            "postcode": self.postcode,
            "suburb": self.suburb,
            "bedrooms": self.bedrooms,
            "median_weekly_rent": self.median_weekly_rent,
            "sample_size": self.sample_size,
            "period": self.period,
            "data_source": self.data_source,
        }

    class Config:
        """Pydantic model configuration."""
        str_strip_whitespace = True
