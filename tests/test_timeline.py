# tests/test_timeline.py
"""
Test package timelines and threshold violation queries.
"""

import pytest

from coldchain.errors import PackageNotFoundError
from simulation.timeline import TimelineQuery, containment_periods, query_threshold_violations
from simulation.transit import TransitSimulator


@pytest.fixture
def delivered(seeded_store, network, notifier, shipping, make_request, rng, clock):
    """A monitored package carried from Phoenix to New York."""
    uid = shipping.create_shipping_label(make_request("AZ", "NY")).uid
    return TransitSimulator(seeded_store, network, notifier, rng=rng, clock=clock).pickup_package(uid)


class TestPackageTimeline:
    """Tests for TimelineQuery.package_timeline."""

    def test_event_sequence(self, delivered, seeded_store):
        timeline = TimelineQuery(seeded_store).package_timeline(delivered.uid)
        assert [e["eventType"] for e in timeline["timeline"]] == [
            "pickup", "arrive",
            "depart", "arrive",
            "transfer", "transferAck",
            "depart", "arrive",
            "depart", "deliver",
        ]

    def test_events_are_ordered(self, delivered, seeded_store):
        events = TimelineQuery(seeded_store).package_timeline(delivered.uid)["timeline"]
        times = [e["eventTime"] for e in events]
        assert times == sorted(times)
        assert all(t.endswith("Z") for t in times)

    def test_locations(self, delivered, seeded_store):
        events = TimelineQuery(seeded_store).package_timeline(delivered.uid)["timeline"]
        assert events[0]["location"] == "1 Camelback Rd, Phoenix, AZ"
        assert events[0]["route"] == "SLS004"
        assert events[1]["location"] == "SLS: PHX, Phoenix, AZ"
        assert events[-1]["location"] == "350 5th Ave, New York, NY"

    def test_route_details(self, delivered, seeded_store):
        routes = TimelineQuery(seeded_store).package_timeline(delivered.uid)["routes"]
        assert [r["routeNbr"] for r in routes] == ["SLS004", "SLS002", "NLS003", "NLS004"]
        assert routes[0]["containers"] == "SLS004000.SLS004001"
        assert routes[1]["containers"] == "SLS002000.SLS002001.SLS002002"
        assert routes[1]["from"] == "SLS: PHX, Phoenix, AZ"
        assert routes[1]["to"] == "SLS: DEN, Denver, CO"
        for route in routes:
            assert route["departureTime"] <= route["arrivalTime"]
            assert route["measurements"]

    def test_violation_flags_match_query(self, delivered, seeded_store):
        routes = TimelineQuery(seeded_store).package_timeline(delivered.uid)["routes"]
        flagged = {r["containers"].rsplit(".", 1)[-1] for r in routes if r["violated"]}
        assert flagged == set(query_threshold_violations(seeded_store, delivered.uid))

    def test_not_picked_up(self, shipping, seeded_store, make_request):
        uid = shipping.create_shipping_label(make_request()).uid
        timeline = TimelineQuery(seeded_store).package_timeline(uid)
        assert timeline == {"uid": uid, "timeline": [], "routes": []}

    def test_unknown_package(self, seeded_store):
        with pytest.raises(PackageNotFoundError):
            TimelineQuery(seeded_store).package_timeline("missing")


class TestThresholdViolations:
    """Tests for violations clipped to containment periods."""

    def test_violations_inside_containment(self, delivered, seeded_store):
        periods = {p.container.get("uid"): p for p in containment_periods(seeded_store, delivered.uid)}
        for container_uid, violation in query_threshold_violations(seeded_store, delivered.uid).items():
            period = periods[container_uid]
            assert violation.violated
            assert period.start <= violation.period_start < violation.period_end <= period.end

    def test_periods_ordered(self, delivered, seeded_store):
        periods = containment_periods(seeded_store, delivered.uid)
        assert [p.route_number for p in periods] == [leg.route_number for leg in delivered.legs]
