# tests/test_graph_store.py
"""
Test the graph store and query builder.

Verifies node keys, edge traversal, ordering, limits and value collection.
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from coldchain.errors import PersistenceError
from coldchain.graph import GraphQuery, as_bool, as_double, as_string, as_time


@pytest.fixture
def route_graph(store):
    """One route with three departs occurrences from one office."""
    office = store.create_node("Office", {"carrier": "SLS", "iata": "DEN", "gmtOffset": "-07:00"})
    route = store.create_node("Route", {"routeNumber": "SLS001", "type": "Ground"})
    for ts in (300, 100, 200):
        store.create_edge("departs", route, office, {"eventTimestamp": ts})
    store.create_edge("arrives", route, office, {"eventTimestamp": 150})
    return office, route


class TestNodes:
    """Tests for node creation and lookup."""

    def test_identifier_from_key_attributes(self, store):
        node = store.create_node("Office", {"carrier": "SLS", "iata": "DEN"})
        assert node.identifier == "SLS:DEN"

    def test_lookup_by_key(self, store):
        created = store.create_node("Office", {"carrier": "SLS", "iata": "DEN", "hub": True})
        found = store.get_node_by_key("Office", {"carrier": "SLS", "iata": "DEN"})
        assert found.id == created.id
        assert found.get("hub") is True

    def test_lookup_missing(self, store):
        assert store.get_node_by_key("Package", {"uid": "nope"}) is None

    def test_missing_key_attributes(self, store):
        with pytest.raises(ValueError):
            store.create_node("Office", {"iata": "DEN"})

    def test_duplicate_key_is_persistence_error(self, store):
        store.create_node("Carrier", {"name": "SLS"})
        with pytest.raises(PersistenceError):
            store.create_node("Carrier", {"name": "SLS"})
        # Session is still usable after the rollback
        assert store.get_node_by_key("Carrier", {"name": "SLS"}) is not None

    def test_commit_failure_rolls_back(self, store, monkeypatch):
        def fail():
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(store.session, "commit", fail)
        with pytest.raises(PersistenceError):
            store.create_node("Carrier", {"name": "NLS"})


class TestQueries:
    """Tests for GraphQuery evaluation."""

    def test_latest_occurrence(self, store, route_graph):
        values = store.query(
            GraphQuery.nodes("Route", routeNumber="SLS001")
            .out_edges("departs")
            .order_by("eventTimestamp", descending=True)
            .limit(1)
            .values("eventTimestamp")
        )
        assert values == [300]

    def test_ascending_order(self, store, route_graph):
        values = store.query(
            GraphQuery.nodes("Route", routeNumber="SLS001")
            .out_edges("departs")
            .order_by("eventTimestamp")
            .values("eventTimestamp")
        )
        assert values == [100, 200, 300]

    def test_edge_type_filter(self, store, route_graph):
        edges = store.query(GraphQuery.nodes("Route", routeNumber="SLS001").out_edges("arrives"))
        assert [e.type for e in edges] == ["arrives"]

    def test_all_out_edges(self, store, route_graph):
        edges = store.query(GraphQuery.nodes("Route", routeNumber="SLS001").out_edges())
        assert len(edges) == 4

    def test_has_filter_on_edges(self, store, route_graph):
        edges = store.query(
            GraphQuery.nodes("Route", routeNumber="SLS001").out_edges("departs").has("eventTimestamp", 200)
        )
        assert len(edges) == 1

    def test_out_and_in(self, store, route_graph):
        office, route = route_graph
        offices = store.query(GraphQuery.nodes("Route", routeNumber="SLS001").out("arrives"))
        assert [n.id for n in offices] == [office.id]
        routes = store.query(GraphQuery.nodes("Office", carrier="SLS", iata="DEN").in_("arrives"))
        assert [n.id for n in routes] == [route.id]

    def test_path(self, store, route_graph):
        office, route = route_graph
        paths = store.query(
            GraphQuery.nodes("Office", carrier="SLS", iata="DEN").in_edges("arrives").out_vertex().path()
        )
        assert len(paths) == 1
        start, edge, end = paths[0]
        assert (start.id, edge.type, end.id) == (office.id, "arrives", route.id)

    def test_non_key_filter(self, store):
        store.create_node("Container", {"uid": "A", "type": "Freezer"})
        store.create_node("Container", {"uid": "B", "type": "Vehicle"})
        nodes = store.query(GraphQuery.nodes("Container", type="Freezer"))
        assert [n.get("uid") for n in nodes] == ["A"]

    def test_values_skips_missing_attributes(self, store):
        store.create_node("Carrier", {"name": "SLS", "description": "South"})
        store.create_node("Carrier", {"name": "NLS"})
        assert store.query(GraphQuery.nodes("Carrier").values("description")) == ["South"]

    def test_no_match(self, store):
        assert store.query(GraphQuery.nodes("Route", routeNumber="none").out_edges("departs")) == []

    def test_terminal_step_is_last(self):
        with pytest.raises(ValueError):
            GraphQuery.nodes("Route").values("routeNumber").limit(1)

    def test_negative_limit(self):
        with pytest.raises(ValueError):
            GraphQuery.nodes("Route").limit(-1)


class TestValueAccessors:
    """Typed accessors fail closed."""

    def test_defaults_for_missing_values(self, store):
        node = store.create_node("Carrier", {"name": "SLS", "hub": "yes", "lat": True})
        assert as_string(node, "description") == ""
        assert as_double(node, "lat") == 0.0
        assert as_bool(node, "hub") is False
        assert as_time(node, "eventTimestamp") is None

    def test_time_from_epoch(self):
        moment = as_time(1710266400)
        assert moment.isoformat() == "2024-03-12T18:00:00+00:00"
