# simulation/transit.py
"""
Package transit simulator.

States:
CREATED -> PICKED_UP
PICKED_UP -> AT_ORIGIN_HUB
AT_ORIGIN_HUB -> TRANSFERRED (destination served by another carrier)
AT_ORIGIN_HUB | TRANSFERRED -> AT_DESTINATION_HUB
AT_DESTINATION_HUB -> DELIVERED

Each leg reads the latest occurrence of its route and synthesizes a new one
when the latest is stale, then records the package's containment period on
the resolved container. Periods are contiguous: every leg starts where the
previous one ended. Lookup failures abort the request; edges already
committed stay in the graph.
"""

import random
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from coldchain.errors import (
    ContainerNotFoundError,
    OfficeNotFoundError,
    RouteNotFoundError,
    TransitStateError,
)
from coldchain.graph import GraphStore, Node, to_epoch
from coldchain.hashing import content_id
from coldchain.logging import get_logger
from coldchain.notifications import ComplianceNotifier

from .compliance import ComplianceSimulator
from .containers import resolve_container
from .network import NetworkModel, Office, Route
from .occurrences import ARRIVES, DEPARTS, Clock, OccurrenceRecorder, utc_now
from .schedule import advance_to_after, local_delay_hours
from .shipping import Address, Package, ShippingService
from .timeline import query_threshold_violations

logger = get_logger(__name__)

# Receiving carrier acknowledges a handoff this long after it
TRANSFER_ACK_DELAY = timedelta(seconds=30)


class TransitState(str, Enum):
    CREATED = "CREATED"
    PICKED_UP = "PICKED_UP"
    AT_ORIGIN_HUB = "AT_ORIGIN_HUB"
    TRANSFERRED = "TRANSFERRED"
    AT_DESTINATION_HUB = "AT_DESTINATION_HUB"
    DELIVERED = "DELIVERED"


# Valid state transitions
TRANSITIONS: Dict[TransitState, Set[TransitState]] = {
    TransitState.CREATED: {TransitState.PICKED_UP},
    TransitState.PICKED_UP: {TransitState.AT_ORIGIN_HUB},
    TransitState.AT_ORIGIN_HUB: {TransitState.TRANSFERRED, TransitState.AT_DESTINATION_HUB},
    TransitState.TRANSFERRED: {TransitState.AT_DESTINATION_HUB},
    TransitState.AT_DESTINATION_HUB: {TransitState.DELIVERED},
    TransitState.DELIVERED: set(),  # Terminal
}


def get_valid_transitions(current_state: TransitState) -> Set[TransitState]:
    """Get valid transitions from current state."""
    return TRANSITIONS.get(current_state, set())


# ============================================================
# ROUTE LOCKS
# ============================================================

_route_locks: Dict[str, threading.Lock] = {}
_route_locks_guard = threading.Lock()


def route_lock(route_number: str) -> threading.Lock:
    """In-process lock serializing occurrence synthesis on one route."""
    with _route_locks_guard:
        lock = _route_locks.get(route_number)
        if lock is None:
            lock = threading.Lock()
            _route_locks[route_number] = lock
        return lock


# ============================================================
# RESULT
# ============================================================

@dataclass
class TransitLeg:
    """One containment period of a package."""
    route_number: str
    route_type: str
    container_uid: str
    start: datetime
    end: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "routeNbr": self.route_number,
            "type": self.route_type,
            "container": self.container_uid,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


@dataclass
class TransitResult:
    """Outcome of a simulated transit, with the states it went through."""
    uid: str
    monitored: bool = False
    state: TransitState = TransitState.CREATED
    history: List[TransitState] = field(default_factory=lambda: [TransitState.CREATED])
    legs: List[TransitLeg] = field(default_factory=list)
    pickup_time: Optional[datetime] = None
    hub_time: Optional[datetime] = None
    transfer_time: Optional[datetime] = None
    delivery_time: Optional[datetime] = None
    violations: Dict[str, Any] = field(default_factory=dict)

    def advance(self, to_state: TransitState):
        """
        Move to a new state.

        Raises:
            TransitStateError: If the transition is not allowed
        """
        valid = get_valid_transitions(self.state)
        if to_state not in valid:
            raise TransitStateError(
                f"Invalid transition: {self.state.value} -> {to_state.value}. "
                f"Valid transitions: {sorted(s.value for s in valid)}"
            )
        self.state = to_state
        self.history.append(to_state)

    @property
    def transferred(self) -> bool:
        return TransitState.TRANSFERRED in self.history

    def to_dict(self) -> Dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "uid": self.uid,
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "monitored": self.monitored,
            "transferred": self.transferred,
            "pickupTime": iso(self.pickup_time),
            "hubTime": iso(self.hub_time),
            "transferTime": iso(self.transfer_time),
            "deliveryTime": iso(self.delivery_time),
            "legs": [leg.to_dict() for leg in self.legs],
            "violations": self.violations,
        }


def employee_id(carrier: str, direction: str, latitude: float, longitude: float) -> str:
    """Stable id of the courier handling a package at a location."""
    return content_id({
        "carrier": carrier,
        "direction": direction,
        "latitude": latitude,
        "longitude": longitude,
    })


# ============================================================
# SIMULATOR
# ============================================================

class TransitSimulator:
    """
    Moves a package from pickup to delivery through the network.

    Usage:
        simulator = TransitSimulator(store, network, notifier)
        result = simulator.pickup_package("4730f2294a6156c8")
    """

    def __init__(
        self,
        store: GraphStore,
        network: NetworkModel,
        notifier: ComplianceNotifier,
        rng: Optional[random.Random] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.network = network
        self.notifier = notifier
        self.rng = rng or random.Random()
        self.clock = clock
        self.occurrences = OccurrenceRecorder(store, self.rng, clock)
        self.compliance = ComplianceSimulator(store, network, self.rng, clock)
        self.shipping = ShippingService(store, network, self.rng, clock)

    # ============================================================
    # LOOKUPS
    # ============================================================

    def _office_node(self, office: Office) -> Node:
        node = self.store.get_node_by_key("Office", office.key)
        if node is None:
            raise OfficeNotFoundError(
                f"office node is not found for {office.carrier} {office.iata}",
                carrier=office.carrier,
                iata=office.iata,
            )
        return node

    def _route_node(self, route: Route) -> Node:
        node = self.store.get_node_by_key("Route", {"routeNumber": route.route_number})
        if node is None:
            raise RouteNotFoundError(
                f"route node is not found for {route.route_number}", route_nbr=route.route_number
            )
        return node

    def _latest(self, route: Route, edge_type: str) -> datetime:
        latest = self.occurrences.latest(route.route_number, edge_type)
        if latest is None:
            raise RouteNotFoundError(
                f"{route.route_number} {edge_type} time is not found", route_nbr=route.route_number
            )
        return latest

    def _container_node(self, route: Route, package: Package) -> Node:
        container = resolve_container(self.network, route, package.handling_cd, package.product)
        node = self.store.get_node_by_key("Container", {"uid": container.uid})
        if node is None:
            raise ContainerNotFoundError(route.route_number, package.product)
        return node

    # ============================================================
    # LEGS
    # ============================================================

    def _ride(
        self,
        package: Package,
        package_node: Node,
        route: Route,
        start: datetime,
        end: datetime,
        result: TransitResult,
    ):
        """Put the package in the route's container for [start, end]."""
        container = self._container_node(route, package)
        if result.monitored:
            self.compliance.monitor_leg(container, route)

        self.store.create_edge("contains", container, package_node, {
            "eventTimestamp": to_epoch(start),
            "outTimestamp": to_epoch(end),
            "childType": "Package",
            "routeNumber": route.route_number,
        })
        result.legs.append(TransitLeg(
            route_number=route.route_number,
            route_type=route.route_type.value,
            container_uid=container.get("uid"),
            start=start,
            end=end,
        ))
        logger.debug(
            "package_contained",
            uid=package.uid,
            route=route.route_number,
            container=container.get("uid"),
            start=start.isoformat(),
            end=end.isoformat(),
        )

    def _local_pickup(
        self,
        package: Package,
        package_node: Node,
        origin: Office,
        result: TransitResult,
    ) -> datetime:
        """Ground pickup at the sender. Returns the ground arrival at the origin office."""
        office_node = self._office_node(origin)
        route = self.network.ground_route(origin)
        route_node = self._route_node(route)
        sender = package.from_address
        delay = local_delay_hours(sender.latitude, sender.longitude, origin)

        with route_lock(route.route_number):
            now = self.clock()
            depart = self._latest(route, DEPARTS)
            arrival = self._latest(route, ARRIVES)
            if depart <= now:
                depart = self.occurrences.record(route_node, office_node, DEPARTS, after=now)
            pickup_time = depart + timedelta(minutes=int(delay * 60))
            if arrival <= pickup_time:
                arrival = self.occurrences.record(route_node, office_node, ARRIVES, after=pickup_time)

        self._ride(package, package_node, route, pickup_time, arrival, result)
        self.store.create_edge("pickup", office_node, package_node, {
            "eventTimestamp": to_epoch(pickup_time),
            "trackingID": package.uid,
            "employeeID": employee_id(origin.carrier, "from", sender.latitude, sender.longitude),
            "latitude": sender.latitude,
            "longitude": sender.longitude,
        })
        result.pickup_time = pickup_time
        result.advance(TransitState.PICKED_UP)

        if result.monitored:
            self.notifier.notify_pickup(
                self.network.compliance_user(origin.carrier),
                package.uid,
                pickup_time,
                sender.latitude,
                sender.longitude,
                package_detail=self._package_detail(package),
            )
        logger.info("package_picked_up", uid=package.uid, office=origin.iata, route=route.route_number)
        return arrival

    def _origin_flight(
        self,
        package: Package,
        package_node: Node,
        origin: Office,
        ground_arrival: datetime,
        result: TransitResult,
    ) -> datetime:
        """Flight from the origin spoke to its hub. Returns the hub arrival."""
        if origin.hub:
            result.advance(TransitState.AT_ORIGIN_HUB)
            return ground_arrival

        hub = self.network.hub_of(origin.carrier)
        route = self.network.air_route(origin, hub)
        route_node = self._route_node(route)

        with route_lock(route.route_number):
            depart = self._latest(route, DEPARTS)
            arrival = self._latest(route, ARRIVES)
            if depart < ground_arrival:
                depart = self.occurrences.record(
                    route_node, self._office_node(origin), DEPARTS, after=ground_arrival
                )
            if arrival <= depart:
                arrival = self.occurrences.record(
                    route_node, self._office_node(hub), ARRIVES, after=depart
                )

        self._ride(package, package_node, route, ground_arrival, arrival, result)
        result.advance(TransitState.AT_ORIGIN_HUB)
        logger.info("package_at_origin_hub", uid=package.uid, hub=hub.iata, route=route.route_number)
        return arrival

    def _transfer(
        self,
        package: Package,
        package_node: Node,
        origin: Office,
        dest: Office,
        hub_time: datetime,
        result: TransitResult,
    ) -> datetime:
        """Hand the package over to the destination carrier. Returns the ack time."""
        from_hub = self.network.hub_of(origin.carrier)
        to_hub = self.network.hub_of(dest.carrier)
        ack_time = hub_time + TRANSFER_ACK_DELAY

        for hub, direction, event_time in ((from_hub, "from", hub_time), (to_hub, "to", ack_time)):
            self.store.create_edge("transfers", self._office_node(hub), package_node, {
                "eventTimestamp": to_epoch(event_time),
                "direction": direction,
                "trackingID": package.uid,
                "employeeID": employee_id(hub.carrier, direction, hub.latitude, hub.longitude),
                "latitude": hub.latitude,
                "longitude": hub.longitude,
            })

        result.transfer_time = hub_time
        result.advance(TransitState.TRANSFERRED)

        if result.monitored:
            self.notifier.notify_transfer(
                self.network.compliance_user(origin.carrier),
                package.uid, dest.carrier, hub_time, from_hub.latitude, from_hub.longitude,
            )
            self.notifier.notify_transfer_ack(
                self.network.compliance_user(dest.carrier),
                package.uid, origin.carrier, ack_time, to_hub.latitude, to_hub.longitude,
            )
        logger.info(
            "package_transferred",
            uid=package.uid,
            from_carrier=origin.carrier,
            to_carrier=dest.carrier,
        )
        return ack_time

    def _destination_flight(
        self,
        package: Package,
        package_node: Node,
        dest: Office,
        hub_time: datetime,
        ready_time: datetime,
        result: TransitResult,
    ) -> datetime:
        """Flight from the destination hub to its spoke. Returns the spoke arrival."""
        if dest.hub:
            result.advance(TransitState.AT_DESTINATION_HUB)
            return hub_time

        hub = self.network.hub_of(dest.carrier)
        route = self.network.air_route(hub, dest)
        route_node = self._route_node(route)

        with route_lock(route.route_number):
            depart = self._latest(route, DEPARTS)
            arrival = self._latest(route, ARRIVES)
            if depart < ready_time:
                depart = self.occurrences.record(
                    route_node, self._office_node(hub), DEPARTS, after=ready_time
                )
            if arrival <= depart:
                arrival = self.occurrences.record(
                    route_node, self._office_node(dest), ARRIVES, after=depart
                )

        # Package waits at the hub inside the outbound container
        self._ride(package, package_node, route, hub_time, arrival, result)
        result.advance(TransitState.AT_DESTINATION_HUB)
        logger.info("package_at_destination", uid=package.uid, office=dest.iata, route=route.route_number)
        return arrival

    def _local_delivery(
        self,
        package: Package,
        package_node: Node,
        dest: Office,
        spoke_time: datetime,
        ready_time: datetime,
        result: TransitResult,
    ) -> datetime:
        """Ground delivery to the recipient. Returns the delivery time."""
        office_node = self._office_node(dest)
        route = self.network.ground_route(dest)
        route_node = self._route_node(route)
        recipient = package.to_address
        delay = local_delay_hours(recipient.latitude, recipient.longitude, dest)

        with route_lock(route.route_number):
            depart = self._latest(route, DEPARTS)
            if depart < ready_time:
                depart = self.occurrences.record(route_node, office_node, DEPARTS, after=ready_time)
                self.occurrences.record(route_node, office_node, ARRIVES, after=depart)

        delivery_time = advance_to_after(depart + timedelta(minutes=int(delay * 60)), spoke_time)
        self._ride(package, package_node, route, spoke_time, delivery_time, result)
        self.store.create_edge("delivery", office_node, package_node, {
            "eventTimestamp": to_epoch(delivery_time),
            "employeeID": employee_id(dest.carrier, "to", recipient.latitude, recipient.longitude),
            "latitude": recipient.latitude,
            "longitude": recipient.longitude,
        })
        result.delivery_time = delivery_time
        result.advance(TransitState.DELIVERED)

        if result.monitored:
            self.notifier.notify_delivery(
                self.network.compliance_user(dest.carrier),
                package.uid,
                delivery_time,
                recipient.latitude,
                recipient.longitude,
            )
        logger.info("package_delivered", uid=package.uid, office=dest.iata, route=route.route_number)
        return delivery_time

    def _report_violations(self, package: Package, result: TransitResult):
        violations = query_threshold_violations(self.store, package.uid)
        for container_uid, violation in violations.items():
            self.notifier.notify_temperature_update(
                self.network.monitoring.compliance_user,
                package.uid,
                container_uid,
                violation.period_start,
                violation.period_end,
                violation.min_value,
                violation.max_value,
                violation.violated,
            )
            result.violations[container_uid] = {
                "periodStart": violation.period_start.isoformat(),
                "periodEnd": violation.period_end.isoformat(),
                "minValue": violation.min_value,
                "maxValue": violation.max_value,
            }
        if violations:
            logger.warning("threshold_violations_reported", uid=package.uid, containers=len(violations))

    def _package_detail(self, package: Package) -> Dict[str, Any]:
        detail = dict(package.label_payload)
        detail.update({
            "product": package.product,
            "height": package.height,
            "width": package.width,
            "depth": package.depth,
            "weight": package.weight,
            "dry-ice-weight": package.dry_ice_weight,
        })
        content = self.shipping.get_content(package.uid)
        if content:
            detail["content"] = content
        return detail

    # ============================================================
    # ENTRY POINT
    # ============================================================

    def pickup_package(self, uid: str) -> TransitResult:
        """
        Simulate the full transit of a package from pickup to delivery.

        Args:
            uid: Package uid

        Returns:
            TransitResult with legs, timestamps and reported violations

        Raises:
            PackageNotFoundError: If the package does not exist
            OfficeNotFoundError: If no office serves the sender or recipient
            RouteNotFoundError: If a route or its occurrences are missing
            ContainerNotFoundError: If no container can hold the package
        """
        package = self.shipping.get_package(uid)
        package_node = self.shipping.get_package_node(uid)
        origin, dest = self._endpoints(package.from_address, package.to_address)

        result = TransitResult(
            uid=uid,
            monitored=self.network.is_monitored(package.handling_cd, package.product),
        )
        log = logger.bind(uid=uid)
        log.info(
            "transit_started",
            origin=f"{origin.carrier}:{origin.iata}",
            destination=f"{dest.carrier}:{dest.iata}",
            monitored=result.monitored,
        )

        ground_arrival = self._local_pickup(package, package_node, origin, result)
        hub_time = self._origin_flight(package, package_node, origin, ground_arrival, result)
        result.hub_time = hub_time

        ready_time = hub_time
        if dest.carrier != origin.carrier:
            ready_time = self._transfer(package, package_node, origin, dest, hub_time, result)

        spoke_time = self._destination_flight(package, package_node, dest, hub_time, ready_time, result)
        self._local_delivery(
            package, package_node, dest, spoke_time, max(spoke_time, ready_time), result
        )
        self._report_violations(package, result)

        log.info(
            "transit_completed",
            legs=len(result.legs),
            transferred=result.transferred,
            violations=len(result.violations),
        )
        return result

    def _endpoints(self, sender: Address, recipient: Address) -> Tuple[Office, Office]:
        return (
            self.network.office_by_state(sender.state_province),
            self.network.office_by_state(recipient.state_province),
        )
