"""
SQLAlchemy ORM Models

Database models for the long-lived property store. Each table mirrors one of
the Pydantic record models; the properties table also keeps the provenance
columns needed to recompute its quality score on every comparison.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String, Integer, Numeric, Date, DateTime, Boolean, Text,
    ForeignKey, CheckConstraint, UniqueConstraint, Index, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.realty_ingest.db.base import Base, CreatedAtMixin, DataSourceMixin
from src.realty_ingest.scoring.quality import stored_quality_score


STATE_CHECK = "state IN ('NSW', 'VIC', 'QLD', 'WA', 'SA', 'TAS', 'ACT', 'NT')"


class Property(Base, CreatedAtMixin):
    """
    Stored property entity.

    The pipeline's current best knowledge of one real-world property. Created
    on first observation, overwritten in place when a better-quality
    observation arrives, never deleted by ingestion.
    """
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    external_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Source-native identifier"
    )
    address: Mapped[str] = mapped_column(String(255), nullable=False, comment="Street address")
    suburb: Mapped[str] = mapped_column(String(100), nullable=False, comment="Suburb / locality")
    state: Mapped[str] = mapped_column(String(3), nullable=False, comment="Jurisdiction code")
    postcode: Mapped[Optional[str]] = mapped_column(String(10), nullable=True, comment="Postal code")

    # Attributes
    property_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    bedrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bathrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    land_area_sqm: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    # Financials
    price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="Last sale price")
    sale_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, comment="Last sale date")
    weekly_rent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rental_yield: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(7, 2),
        nullable=True,
        comment="Gross rental yield (percent)"
    )

    # Geolocation
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)

    # Provenance
    data_source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    data_quality: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Quality tier; NULL for legacy rows"
    )
    is_rental_estimated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    confidence_score: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 4),
        nullable=True,
        default=Decimal("1"),
        comment="Confidence multiplier in [0, 1]"
    )
    fetched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    sales: Mapped[list["SaleHistory"]] = relationship(
        "SaleHistory",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="SaleHistory.sale_date.desc()"
    )

    __table_args__ = (
        UniqueConstraint("external_id", "state", name="uq_properties_external_id_state"),
        UniqueConstraint("address", "postcode", "state", name="uq_properties_address_postcode_state"),
        CheckConstraint(STATE_CHECK, name="check_properties_state"),
        CheckConstraint(
            "data_quality IS NULL OR data_quality IN ('individual', 'listing', 'aggregated', 'estimated')",
            name="check_properties_data_quality"
        ),
        CheckConstraint(
            "confidence_score IS NULL OR (confidence_score >= 0 AND confidence_score <= 1)",
            name="check_properties_confidence_range"
        ),
        Index("idx_properties_postcode", "postcode"),
        Index("idx_properties_data_source", "data_source"),
        Index("idx_properties_state_postcode", "state", "postcode"),
    )

    def quality_score(self) -> Decimal:
        """Recompute the effective quality score from stored tier + confidence."""
        return stored_quality_score(self.data_quality, self.confidence_score)

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, address={self.address}, postcode={self.postcode}, state={self.state})>"


class SaleHistory(Base, CreatedAtMixin, DataSourceMixin):
    """Append-only sale ledger (many per property)."""
    __tablename__ = "sales_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    property_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        comment="References properties table"
    )
    sale_price: Mapped[int] = mapped_column(Integer, nullable=False)
    sale_date: Mapped[date] = mapped_column(Date, nullable=False)
    settlement_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    contract_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    property: Mapped["Property"] = relationship("Property", back_populates="sales")

    __table_args__ = (
        UniqueConstraint("property_id", "sale_date", "sale_price", name="uq_sales_history_sale"),
        Index("idx_sales_history_property", "property_id", "sale_date"),
        Index("idx_sales_history_date", "sale_date"),
    )

    def __repr__(self) -> str:
        return f"<SaleHistory(property_id={self.property_id}, price={self.sale_price}, date={self.sale_date})>"


class RentalMedian(Base, CreatedAtMixin, DataSourceMixin):
    """Aggregate median weekly rent by postcode and bedroom count."""
    __tablename__ = "rental_medians"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    state: Mapped[str] = mapped_column(String(3), nullable=False)
    postcode: Mapped[str] = mapped_column(String(10), nullable=False)
    suburb: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    bedrooms: Mapped[int] = mapped_column(Integer, nullable=False)
    median_weekly_rent: Mapped[int] = mapped_column(Integer, nullable=False)
    sample_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="Bonds in this median")
    period: Mapped[date] = mapped_column(Date, nullable=False, comment="Month or quarter represented")

    __table_args__ = (
        UniqueConstraint(
            "state", "postcode", "bedrooms", "period", "data_source",
            name="uq_rental_medians_natural_key"
        ),
        CheckConstraint(STATE_CHECK, name="check_rental_medians_state"),
        Index("idx_rental_medians_lookup", "state", "postcode", "bedrooms", "period"),
    )

    def __repr__(self) -> str:
        return (
            f"<RentalMedian(postcode={self.postcode}, bedrooms={self.bedrooms}, "
            f"rent={self.median_weekly_rent}, period={self.period})>"
        )


class IngestionRun(Base):
    """Job execution bookkeeping for one source run."""
    __tablename__ = "ingestion_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    source_id: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Job status: running, completed, failed"
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    records_fetched: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_inserted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_errored: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('running', 'completed', 'failed')",
            name="check_ingestion_run_status"
        ),
        UniqueConstraint("source_id", "started_at", name="uq_ingestion_runs_source_started"),
        Index("idx_ingestion_runs_source", "source_id", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<IngestionRun(source={self.source_id}, status={self.status})>"
