"""
Shared pytest fixtures for HOUSECALL tests.

CRITICAL: Database patching must occur at module-import time so SQLite
engine creation happens with a StaticPool before api.database is imported
anywhere. All connections then share the same in-memory database.
"""

import os
import sys
from datetime import date
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

# ---------------------------------------------------------------------------
# Section 1: Environment setup (before ANY api.* imports)
# ---------------------------------------------------------------------------
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("AUTH_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DB_ECHO", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

# ---------------------------------------------------------------------------
# Section 2: Patch SQLAlchemy engine creation for SQLite compatibility
# ---------------------------------------------------------------------------
from sqlalchemy import create_engine as _real_create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def _patched_create_engine(url, **kwargs):
    """Create engine, stripping pool params invalid for SQLite.

    Uses StaticPool so all connections share the same in-memory database.
    """
    if str(url).startswith("sqlite"):
        kwargs.pop("pool_size", None)
        kwargs.pop("max_overflow", None)
        kwargs.pop("pool_pre_ping", None)
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        kwargs["poolclass"] = StaticPool
    return _real_create_engine(url, **kwargs)


_patcher = patch("sqlalchemy.create_engine", _patched_create_engine)
_patcher.start()

for _mod in list(sys.modules.keys()):
    if _mod.startswith("api.database"):
        del sys.modules[_mod]

from api.database import Base, get_db, engine as test_engine  # noqa: E402
import api.models  # noqa: E402,F401 (registers all ORM models)

TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=test_engine
)
Base.metadata.create_all(bind=test_engine)

# ---------------------------------------------------------------------------
# Section 3: Core database + client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db():
    """Create a test database session with transaction isolation."""
    connection = test_engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def client(db):
    """Create a FastAPI TestClient with database dependency override."""
    from api.main import app

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Tables already exist; startup create_all would commit the test transaction
    with patch("api.main.init_db"):
        with TestClient(app) as test_client:
            yield test_client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Section 4: Auth fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_enabled(monkeypatch):
    """Turn API key authentication on for one test."""
    from api.config import settings

    monkeypatch.setattr(settings, "auth_enabled", True)
    return settings


@pytest.fixture
def api_key(db):
    """Administrator API key (plain text)."""
    from api.auth import create_api_key_in_db

    plain_key, _ = create_api_key_in_db(db, name="Test Admin", is_admin=True)
    return plain_key


@pytest.fixture
def account_key(db):
    """(plain key, APIKey row) for a regular account."""
    from api.auth import create_api_key_in_db

    return create_api_key_in_db(db, name="Test Family")


# ---------------------------------------------------------------------------
# Section 5: Domain fixtures
# ---------------------------------------------------------------------------


def _box(min_lng, min_lat, max_lng, max_lat):
    """Axis-aligned rectangle as a GeoJSON Polygon."""
    return {
        "type": "Polygon",
        "coordinates": [[
            [min_lng, min_lat],
            [max_lng, min_lat],
            [max_lng, max_lat],
            [min_lng, max_lat],
            [min_lng, min_lat],
        ]],
    }


@pytest.fixture
def zone_factory(db):
    """Create zones through the registry. Default boundary is the 0..10 square."""
    from api.zone_registry import ZoneRegistry

    registry = ZoneRegistry(db)

    def _create(name="Test Zone", boundary=None, **fields):
        data = {"name": name, "boundary": boundary or _box(0, 0, 10, 10)}
        data.update(fields)
        return registry.create_zone(data)

    return _create


@pytest.fixture
def family_member(db):
    """Active patient owned by the anonymous account (auth disabled)."""
    from api.models import FamilyMember

    member = FamilyMember(
        first_name="Jane",
        last_name="Doe",
        dob=date(1980, 5, 17),
        phin="123456789",
        mhsc="987654",
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


class FakeNominatim:
    """In-process stand-in for the Nominatim HTTP API."""

    def __init__(self):
        self.search_results = []
        self.reverse_result = {"error": "Unable to geocode"}
        self.status_code = 200
        self.requests = []

    def add_result(self, lat, lng, **kwargs):
        self.search_results.append(nominatim_result(lat, lng, **kwargs))

    def set_reverse(self, lat, lng, **kwargs):
        self.reverse_result = nominatim_result(lat, lng, **kwargs)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "upstream"})
        if request.url.path.endswith("/search"):
            return httpx.Response(200, json=self.search_results)
        if request.url.path.endswith("/reverse"):
            return httpx.Response(200, json=self.reverse_result)
        return httpx.Response(404)


def nominatim_result(lat, lng, display_name="100 Main St, Winnipeg, Manitoba, Canada"):
    return {
        "lat": str(lat),
        "lon": str(lng),
        "display_name": display_name,
        "address": {
            "house_number": "100",
            "road": "Main St",
            "city": "Winnipeg",
            "state": "Manitoba",
            "ISO3166-2-lvl4": "CA-MB",
            "postcode": "R3C 1A1",
            "country": "Canada",
        },
    }


@pytest.fixture
def geocoder(monkeypatch):
    """Route geocoding HTTP calls to a FakeNominatim."""
    import api.geocoding

    fake = FakeNominatim()
    monkeypatch.setattr(
        api.geocoding, "GEOCODING_HTTP_TRANSPORT", httpx.MockTransport(fake.handler)
    )
    return fake
