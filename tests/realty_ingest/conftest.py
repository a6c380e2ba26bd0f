"""
Shared fixtures for the ingestion test suite.
"""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from src.realty_ingest.db.base import Base, import_all_models
from src.realty_ingest.models.observation import (
    DataQuality,
    PropertyObservation,
    PropertyType,
    SourceMetadata,
    State,
)


@pytest.fixture(scope="function")
def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine("sqlite:///:memory:")

    # pysqlite defers BEGIN; take over transaction control so SAVEPOINTs nest properly
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    import_all_models()
    Base.metadata.create_all(engine)

    Session = sessionmaker(bind=engine, expire_on_commit=False)
    session = Session()

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def make_observation():
    """Factory for PropertyObservation with sensible NSW defaults."""

    def _make(
        data_quality=DataQuality.INDIVIDUAL,
        confidence="0.9",
        source_id="nsw_sales",
        **overrides
    ):
        fields = {
            "external_id": "NSW-1001",
            "address": "10 Smith Street",
            "suburb": "Surry Hills",
            "state": State.NSW,
            "postcode": "2010",
            "property_type": PropertyType.HOUSE,
            "bedrooms": 3,
            "sale_price": 800_000,
            "sale_date": date(2024, 3, 15),
        }
        fields.update(overrides)
        fields["source_metadata"] = SourceMetadata(
            source_id=source_id,
            data_quality=data_quality,
            confidence_score=Decimal(confidence),
        )
        return PropertyObservation(**fields)

    return _make
