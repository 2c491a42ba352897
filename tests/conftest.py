"""
Test configuration and fixtures.

Every test runs against a fresh in-memory SQLite database.
"""

import os

# Must be set BEFORE any imports of bookingapp.config / bookingapp.database
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from bookingapp.database import Base, SessionLocal, engine, get_db  # noqa: E402
from bookingapp.main import app  # noqa: E402
from bookingapp.models import Business, IndustryFrequency, ServiceProvider  # noqa: E402


@pytest.fixture(scope="function")
def db():
    """Session on a freshly created schema, dropped after the test"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def business(db):
    business = Business(name="Sparkle Cleaning", industry_id="home-cleaning")
    db.add(business)
    db.commit()
    db.refresh(business)
    return business


@pytest.fixture
def other_business(db):
    business = Business(name="Other Cleaners", industry_id="home-cleaning")
    db.add(business)
    db.commit()
    db.refresh(business)
    return business


@pytest.fixture
def provider(db, business):
    provider = ServiceProvider(
        business_id=business.id, first_name="Ana", last_name="Lopez", status="active"
    )
    db.add(provider)
    db.commit()
    db.refresh(provider)
    return provider


@pytest.fixture
def frequency_catalog(db, business):
    """Frequencies as an admin would configure them for the business's industry"""
    rows = [
        IndustryFrequency(
            business_id=business.id,
            industry_id="home-cleaning",
            name="Weekly",
            frequency_repeats="7 days",
        ),
        IndustryFrequency(
            business_id=business.id,
            industry_id="home-cleaning",
            name="Deep Clean Club",
            frequency_repeats="1 month",
        ),
        IndustryFrequency(
            business_id=business.id,
            industry_id="home-cleaning",
            name="One Time",
            frequency_repeats=None,
        ),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def client(db):
    """TestClient sharing the test session"""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
