# tests/conftest.py
"""
Pytest configuration and fixtures.

Tests run against a private in-memory SQLite database per test, a small
two-carrier network and a fixed clock, so simulations are deterministic
for a given random seed.
"""

import base64
import copy
import json
import os
import random
from datetime import datetime, timezone

import pytest

# Must be set before coldchain.settings is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import httpx
from sqlalchemy.orm import Session

from coldchain.db.engine import create_db_engine, init_db
from coldchain.graph import GraphStore
from coldchain.notifications import ComplianceNotifier
from simulation.config import parse_network_config
from simulation.graph_seeder import GraphSeeder
from simulation.network import build_network
from simulation.shipping import PackageRequest, ShippingService

# 11:00 in Denver, 13:00 in New York
FIXED_NOW = datetime(2024, 3, 12, 18, 0, 0, tzinfo=timezone.utc)

COMPLIANCE_URL = "http://compliance.test/api/v1"

NETWORK_DATA = {
    "carriers": {
        "SLS": {
            "description": "Southern Logistics Services",
            "complianceUser": "sls-user",
            "offices": {
                "DEN": {"hub": True, "description": "Denver, CO", "gmtOffset": "-07:00",
                        "latitude": 39.7392, "longitude": -104.9903},
                "PHX": {"description": "Phoenix, AZ", "gmtOffset": "-07:00",
                        "latitude": 33.4484, "longitude": -112.0740},
            },
        },
        "NLS": {
            "description": "Northern Logistics Services",
            "complianceUser": "nls-user",
            "offices": {
                "ORD": {"hub": True, "description": "Chicago, IL", "gmtOffset": "-06:00",
                        "latitude": 41.8781, "longitude": -87.6298},
                "JFK": {"description": "New York, NY", "gmtOffset": "-05:00",
                        "latitude": 40.7128, "longitude": -74.0060},
            },
        },
    },
    "products": {
        "PfizerVaccine": {"handlingCd": "P", "minValue": -80, "maxValue": -60},
        "DryIce": {"handlingCd": "D", "minValue": 0, "maxValue": 200},
    },
    "monitoring": {
        "enabled": True,
        "violationRate": 1.0,
        "complianceUser": "monitor-user",
        "complianceService": COMPLIANCE_URL,
    },
}

# Street addresses near each office, keyed by state
ADDRESSES = {
    "AZ": {"street": "1 Camelback Rd", "city": "Phoenix", "state-province": "AZ",
           "postal-code": "85012", "country": "US", "latitude": 33.5, "longitude": -112.05},
    "CO": {"street": "200 Colfax Ave", "city": "Denver", "state-province": "CO",
           "postal-code": "80202", "country": "US", "latitude": 39.75, "longitude": -105.0},
    "IL": {"street": "50 Wacker Dr", "city": "Chicago", "state-province": "IL",
           "postal-code": "60606", "country": "US", "latitude": 41.88, "longitude": -87.63},
    "NY": {"street": "350 5th Ave", "city": "New York", "state-province": "NY",
           "postal-code": "10118", "country": "US", "latitude": 40.75, "longitude": -73.99},
}


def make_package_request(
    from_state: str = "AZ",
    to_state: str = "NY",
    handling: str = "P",
    product: str = "PfizerVaccine",
    **overrides,
) -> PackageRequest:
    """Label request between addresses of two states."""
    data = {
        "handling": handling,
        "height": 10.0,
        "width": 20.0,
        "depth": 30.0,
        "weight": 4.5,
        "dry-ice-weight": 1.0,
        "sender": "Pfizer Inc",
        "from": dict(ADDRESSES[from_state]),
        "recipient": "City Hospital",
        "to": dict(ADDRESSES[to_state]),
        "content": {
            "product": product,
            "description": "vaccine vials",
            "producer": "Pfizer",
            "count": 100,
            "start-lot-number": "LOT-0001",
            "end-lot-number": "LOT-0100",
        },
    }
    data.update(overrides)
    return PackageRequest.model_validate(data)


@pytest.fixture
def network_data() -> dict:
    return copy.deepcopy(NETWORK_DATA)


@pytest.fixture
def network_config(network_data):
    return parse_network_config(network_data)


@pytest.fixture
def network(network_config):
    return build_network(network_config)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def engine():
    """Private in-memory database with the graph tables."""
    eng = create_db_engine("sqlite://")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine) -> Session:
    session = Session(bind=engine)
    yield session
    session.close()


@pytest.fixture
def store(session) -> GraphStore:
    return GraphStore(session)


@pytest.fixture
def seeded_store(store, network, rng, clock) -> GraphStore:
    """Graph store holding the seeded network."""
    GraphSeeder(network, graph_store=store, rng=rng, clock=clock).seed_network()
    return store


@pytest.fixture
def sent_events() -> list:
    """(path, actor, payload) of every request the compliance service received."""
    return []


@pytest.fixture
def notifier(sent_events, network_config):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path.rsplit("/", 1)[-1]
        auth = request.headers.get("authorization", "")
        actor = base64.b64decode(auth.split(" ", 1)[1]).decode().split(":", 1)[0] if auth else ""
        sent_events.append((path, actor, json.loads(request.content)))
        return httpx.Response(200, text="accepted")

    client = httpx.Client(transport=httpx.MockTransport(handler))
    notifier = ComplianceNotifier(
        enabled=True,
        service_url=COMPLIANCE_URL,
        event_paths=network_config.monitoring.event_paths(),
        max_attempts=1,
        client=client,
    )
    yield notifier
    notifier.close()


@pytest.fixture
def shipping(seeded_store, network, rng, clock) -> ShippingService:
    return ShippingService(seeded_store, network, rng=rng, clock=clock)


@pytest.fixture
def make_request():
    """Factory for label requests, see make_package_request."""
    return make_package_request
