# simulation/timeline.py
"""
Package timeline and threshold violation queries.

Reads back the transit history of a package from the graph:
- custody events (pickup, transfers, delivery) are edges into the package
- each containment period is a "contains" edge (Container -> Package)
  tagged with the route it rode on
- measurements of the containers it rode in are "measures" edges
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from coldchain.errors import PackageNotFoundError
from coldchain.graph import (
    Edge,
    GraphQuery,
    GraphStore,
    Node,
    as_bool,
    as_double,
    as_string,
    as_time,
)
from coldchain.logging import get_logger
from coldchain.notifications import format_event_time

from .compliance import Measurement

logger = get_logger(__name__)


@dataclass
class ContainmentPeriod:
    """A package riding in one container from start to end."""
    container: Node
    edge: Edge
    start: datetime
    end: datetime

    @property
    def route_number(self) -> str:
        return as_string(self.edge, "routeNumber")


def containment_periods(store: GraphStore, uid: str) -> List[ContainmentPeriod]:
    """Containment periods of a package ordered by start time."""
    paths = store.query(
        GraphQuery.nodes("Package", uid=uid).in_edges("contains").out_vertex().path()
    )
    periods = []
    for _, edge, container in paths:
        if as_string(edge, "childType") != "Package":
            continue
        periods.append(ContainmentPeriod(
            container=container,
            edge=edge,
            start=as_time(edge, "eventTimestamp"),
            end=as_time(edge, "outTimestamp"),
        ))
    return sorted(periods, key=lambda p: p.start)


def container_measurements(
    store: GraphStore,
    container_uid: str,
    period_start: datetime,
    period_end: datetime,
    violated_only: bool = False,
) -> List[Measurement]:
    """Measurements of a container overlapping a period, clipped to it."""
    query = GraphQuery.nodes("Container", uid=container_uid).out_edges("measures")
    if violated_only:
        query = query.has("violated", True)
    edges = store.query(query.order_by("eventTimestamp"))

    result = []
    for edge in edges:
        start = max(as_time(edge, "startTimestamp"), period_start)
        end = min(as_time(edge, "eventTimestamp"), period_end)
        if start < end:
            result.append(Measurement(
                period_start=start,
                period_end=end,
                min_value=as_double(edge, "minValue"),
                max_value=as_double(edge, "maxValue"),
                violated=as_bool(edge, "violated"),
            ))
    return result


def query_threshold_violations(store: GraphStore, uid: str) -> Dict[str, Measurement]:
    """
    First threshold violation per container while the package was inside it.

    Returns:
        Container uid -> violation clipped to the containment period
    """
    result: Dict[str, Measurement] = {}
    for period in containment_periods(store, uid):
        container_uid = as_string(period.container, "uid")
        if container_uid in result:
            continue
        violations = container_measurements(
            store, container_uid, period.start, period.end, violated_only=True
        )
        if violations:
            result[container_uid] = violations[0]
    return result


# ============================================================
# TIMELINE
# ============================================================

def _office_location(office: Optional[Node]) -> str:
    if office is None:
        return ""
    return f"{as_string(office, 'carrier')}: {as_string(office, 'iata')}, {as_string(office, 'description')}"


def _address_location(address: Optional[Node]) -> str:
    if address is None:
        return ""
    return (
        f"{as_string(address, 'street')}, {as_string(address, 'city')}, "
        f"{as_string(address, 'stateProvince')}"
    )


def _event(
    event_time: datetime,
    event_type: str,
    location: str,
    latitude: float,
    longitude: float,
    route: Optional[str] = None,
) -> Dict[str, Any]:
    event = {
        "eventTime": format_event_time(event_time),
        "eventType": event_type,
        "location": location,
        "latitude": latitude,
        "longitude": longitude,
    }
    if route:
        event["route"] = route
    return event


class TimelineQuery:
    """Builds the transit timeline of a package."""

    def __init__(self, store: GraphStore):
        self.store = store

    def _first(self, query: GraphQuery) -> Optional[Any]:
        result = self.store.query(query.limit(1))
        return result[0] if result else None

    def _office(self, carrier: str, iata: str) -> Optional[Node]:
        return self.store.get_node_by_key("Office", {"carrier": carrier, "iata": iata})

    def container_path(self, container: Node) -> str:
        """Dotted uid path from the vehicle down to a container."""
        path = [as_string(container, "uid")]
        current = container
        while True:
            parent = self._first(GraphQuery.nodes("Container", uid=as_string(current, "uid")).in_("contains"))
            if parent is None:
                return ".".join(path)
            path.insert(0, as_string(parent, "uid"))
            current = parent

    def route_detail(self, period: ContainmentPeriod) -> Optional[Dict[str, Any]]:
        """Route, occurrence times, container path and measurements of a containment period."""
        route = self.store.get_node_by_key("Route", {"routeNumber": period.route_number})
        if route is None:
            logger.warning("timeline_route_missing", route=period.route_number)
            return None

        # Departure is the latest occurrence before the period ends; arrival the first after it
        departs = [
            as_time(t) for t in self.store.query(
                GraphQuery.nodes("Route", routeNumber=period.route_number)
                .out_edges("departs").values("eventTimestamp")
            )
        ]
        departs = [t for t in departs if t <= period.end]
        departure = max(departs) if departs else period.start
        arrivals = [
            as_time(t) for t in self.store.query(
                GraphQuery.nodes("Route", routeNumber=period.route_number)
                .out_edges("arrives").values("eventTimestamp")
            )
        ]
        later = [t for t in arrivals if t >= departure]
        arrival = min(later) if later else period.end

        carrier = as_string(route, "carrier")
        from_office = self._office(carrier, as_string(route, "fromIata"))
        to_office = self._office(carrier, as_string(route, "toIata"))

        detail = {
            "routeNbr": period.route_number,
            "type": as_string(route, "type"),
            "departureTime": format_event_time(departure),
            "from": _office_location(from_office),
            "arrivalTime": format_event_time(arrival),
            "to": _office_location(to_office),
            "containers": self.container_path(period.container),
            "violated": False,
            "measurements": [],
            "_departure": departure,
            "_from": from_office,
            "_to": to_office,
        }
        if as_string(period.container, "type") == "Freezer":
            measurements = container_measurements(
                self.store, as_string(period.container, "uid"), period.start, period.end
            )
            detail["violated"] = any(m.violated for m in measurements)
            detail["measurements"] = [
                {
                    "periodStart": format_event_time(m.period_start),
                    "periodEnd": format_event_time(m.period_end),
                    "minValue": m.min_value,
                    "maxValue": m.max_value,
                    "violated": m.violated,
                }
                for m in measurements
            ]
        return detail

    def package_timeline(self, uid: str) -> Dict[str, Any]:
        """
        Transit timeline of a package.

        Raises:
            PackageNotFoundError: If the package does not exist
        """
        if self.store.get_node_by_key("Package", {"uid": uid}) is None:
            raise PackageNotFoundError(uid)

        custody = self.store.query(GraphQuery.nodes("Package", uid=uid).in_edges().out_vertex().path())
        pickup_edge = next((e for _, e, _ in custody if e.type == "pickup"), None)
        delivery_edge = next((e for _, e, _ in custody if e.type == "delivery"), None)
        pickup_time = as_time(pickup_edge, "eventTimestamp") if pickup_edge else None
        delivery_time = as_time(delivery_edge, "eventTimestamp") if delivery_edge else None

        sender = self._first(GraphQuery.nodes("Package", uid=uid).out("sender"))
        recipient = self._first(GraphQuery.nodes("Package", uid=uid).out("recipient"))

        timeline: List[Dict[str, Any]] = []
        routes: List[Dict[str, Any]] = []

        if pickup_edge is not None:
            timeline.append(_event(
                pickup_time, "pickup", _address_location(sender),
                as_double(pickup_edge, "latitude"), as_double(pickup_edge, "longitude"),
            ))

        for period in containment_periods(self.store, uid):
            detail = self.route_detail(period)
            if detail is None:
                continue
            departure = detail.pop("_departure")
            from_office = detail.pop("_from")
            to_office = detail.pop("_to")
            routes.append(detail)
            route_number = detail["routeNbr"]

            if pickup_time is not None and period.start == pickup_time:
                timeline[0]["route"] = route_number
            else:
                timeline.append(_event(
                    max(departure, period.start), "depart", detail["from"],
                    as_double(from_office, "latitude") if from_office else 0.0,
                    as_double(from_office, "longitude") if from_office else 0.0,
                    route_number,
                ))

            if delivery_time is not None and period.end == delivery_time:
                timeline.append(_event(
                    delivery_time, "deliver", _address_location(recipient),
                    as_double(delivery_edge, "latitude"), as_double(delivery_edge, "longitude"),
                    route_number,
                ))
            else:
                timeline.append(_event(
                    period.end, "arrive", detail["to"],
                    as_double(to_office, "latitude") if to_office else 0.0,
                    as_double(to_office, "longitude") if to_office else 0.0,
                    route_number,
                ))

        for _, edge, office in custody:
            if edge.type != "transfers":
                continue
            event_type = "transferAck" if as_string(edge, "direction") == "to" else "transfer"
            timeline.append(_event(
                as_time(edge, "eventTimestamp"), event_type, _office_location(office),
                as_double(edge, "latitude"), as_double(edge, "longitude"),
            ))

        timeline.sort(key=lambda e: e["eventTime"])
        return {"uid": uid, "timeline": timeline, "routes": routes}
