# tests/test_api.py
"""
Test the package HTTP API.

Routes run against the seeded test database through a dependency
override; the network model and notifier are placed on app.state the
way the application lifespan does.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from coldchain.api import packages_router
from coldchain.db.engine import get_session


@pytest.fixture
def client(seeded_store, network, notifier, rng):
    app = FastAPI()
    app.include_router(packages_router)
    app.state.network = network
    app.state.notifier = notifier
    app.state.rng = rng

    def override_session():
        yield seeded_store.session

    app.dependency_overrides[get_session] = override_session
    with TestClient(app) as test_client:
        yield test_client


def _create(client, make_request, *args, **kwargs) -> dict:
    body = make_request(*args, **kwargs).model_dump(by_alias=True)
    response = client.put("/packages/create", json=body)
    assert response.status_code == 200, response.text
    return response.json()


class TestCreatePackage:
    """Tests for PUT /packages/create."""

    def test_create(self, client, make_request):
        label = _create(client, make_request, "AZ", "NY")
        assert label["carrier"] == "SLS"
        assert label["handling"] == "P"
        assert label["from"]["state-province"] == "AZ"
        assert label["estimated-pickup"] < label["estimated-delivery"]

    def test_unserved_state(self, client, make_request):
        body = make_request("AZ", "NY").model_dump(by_alias=True)
        body["to"]["state-province"] = "TX"
        response = client.put("/packages/create", json=body)
        assert response.status_code == 404

    def test_invalid_body(self, client):
        response = client.put("/packages/create", json={"handling": "P"})
        assert response.status_code == 422


class TestPickupPackage:
    """Tests for PUT /packages/pickup."""

    def test_pickup(self, client, make_request, sent_events):
        label = _create(client, make_request, "AZ", "NY")
        response = client.put("/packages/pickup", params={"uid": label["uid"]})

        assert response.status_code == 200, response.text
        result = response.json()
        assert result["state"] == "DELIVERED"
        assert result["transferred"] is True
        assert [leg["routeNbr"] for leg in result["legs"]] == ["SLS004", "SLS002", "NLS003", "NLS004"]
        assert sent_events[0][0] == "pickup"

    def test_unknown_package(self, client):
        response = client.put("/packages/pickup", params={"uid": "missing"})
        assert response.status_code == 404

    def test_uid_required(self, client):
        assert client.put("/packages/pickup").status_code == 422


class TestTimeline:
    """Tests for GET /packages/timeline."""

    def test_timeline_after_pickup(self, client, make_request):
        label = _create(client, make_request, "AZ", "CO")
        client.put("/packages/pickup", params={"uid": label["uid"]})

        response = client.get("/packages/timeline", params={"uid": label["uid"]})
        assert response.status_code == 200
        body = response.json()
        assert body["uid"] == label["uid"]
        assert body["timeline"][0]["eventType"] == "pickup"
        assert body["timeline"][-1]["eventType"] == "deliver"
        assert [r["routeNbr"] for r in body["routes"]] == ["SLS004", "SLS002", "SLS001"]

    def test_unknown_package(self, client):
        assert client.get("/packages/timeline", params={"uid": "missing"}).status_code == 404


class TestNetworkNotLoaded:
    """Routes needing the network answer 503 before startup finished."""

    def test_create_without_network(self, seeded_store, make_request):
        app = FastAPI()
        app.include_router(packages_router)
        app.dependency_overrides[get_session] = lambda: seeded_store.session
        with TestClient(app) as test_client:
            body = make_request().model_dump(by_alias=True)
            assert test_client.put("/packages/create", json=body).status_code == 503
