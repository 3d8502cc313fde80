# simulation/network.py
"""
Network model builder.

Builds the carrier / office / route / container topology from the network
config. The resulting NetworkModel is constructed once and passed to every
simulator component.

Per carrier (route numbers "<carrier><seq:03d>", in office order):
- each non-hub office gets an Air route to the hub departing 16:00 local and
  an Air route from the hub departing 00:00 local; both share one Vehicle
- every office, hub included, gets a Ground route 08:00 -> 15:00 local

Containers (uids "<routeNumber><seq:03d>", Vehicle is seq 000):
- Air:    Vehicle -> one ULD per threshold -> one Freezer tagged with the product
- Ground: Vehicle -> one Freezer per threshold
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from coldchain.errors import ConfigError, OfficeNotFoundError, RouteNotFoundError
from coldchain.logging import get_logger

from .config import MonitoringConfig, NetworkConfig
from .schedule import arrival_time, normalize_gmt_offset

logger = get_logger(__name__)

# Handling code of perishable, temperature-monitored goods
PERISHABLE = "P"
DRY_ICE = "D"

# Local schedules
TO_HUB_DEPART = "16:00"
FROM_HUB_DEPART = "00:00"
GROUND_DEPART = "08:00"
GROUND_ARRIVAL = "15:00"

UNITS = {PERISHABLE: "C", DRY_ICE: "kg"}


class RouteType(str, Enum):
    AIR = "Air"
    GROUND = "Ground"


class ContainerKind(str, Enum):
    VEHICLE = "Vehicle"
    ULD = "ULD"
    FREEZER = "Freezer"


@dataclass
class Threshold:
    """Tolerance band of a monitored product."""
    name: str
    item_type: str
    min_value: float
    max_value: float
    unit: str = ""

    def to_attrs(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.item_type,
            "minValue": self.min_value,
            "maxValue": self.max_value,
            "unit": self.unit,
        }


@dataclass
class Office:
    iata: str
    carrier: str
    hub: bool
    description: str
    state: str
    gmt_offset: str
    latitude: float
    longitude: float
    routes: List[str] = field(default_factory=list)  # Route numbers owned by this office

    @property
    def key(self) -> Dict[str, str]:
        return {"carrier": self.carrier, "iata": self.iata}

    def to_attrs(self) -> Dict[str, Any]:
        return {
            "iata": self.iata,
            "carrier": self.carrier,
            "hub": self.hub,
            "description": self.description,
            "state": self.state,
            "gmtOffset": self.gmt_offset,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


@dataclass
class Route:
    route_number: str
    route_type: RouteType
    scheduled_depart: str
    scheduled_arrival: str
    from_office: Office
    to_office: Office
    vehicle_uid: str = ""

    @property
    def carrier(self) -> str:
        return self.from_office.carrier

    def to_attrs(self) -> Dict[str, Any]:
        return {
            "routeNumber": self.route_number,
            "type": self.route_type.value,
            "carrier": self.carrier,
            "fromIata": self.from_office.iata,
            "toIata": self.to_office.iata,
            "scheduledDepart": self.scheduled_depart,
            "scheduledArrival": self.scheduled_arrival,
        }


@dataclass
class Container:
    uid: str
    kind: ContainerKind
    product: Optional[str] = None  # Only Freezers carry a monitored product
    children: List[str] = field(default_factory=list)

    def to_attrs(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "type": self.kind.value,
            "monitor": self.product or "",
        }


@dataclass
class Carrier:
    name: str
    description: str
    compliance_user: str
    offices: Dict[str, Office] = field(default_factory=dict)

    def to_attrs(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description}


@dataclass
class NetworkModel:
    """
    Immutable-after-build view of the logistics network.

    containers is an arena keyed by uid; each Container lists its children
    by uid.
    """
    carriers: Dict[str, Carrier] = field(default_factory=dict)
    hubs: Dict[str, Office] = field(default_factory=dict)
    thresholds: Dict[str, Threshold] = field(default_factory=dict)
    routes: Dict[str, Route] = field(default_factory=dict)
    containers: Dict[str, Container] = field(default_factory=dict)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def offices(self) -> Iterator[Office]:
        """All offices in config order."""
        for carrier in self.carriers.values():
            yield from carrier.offices.values()

    def find_office_by_state(self, state: str) -> Optional[Office]:
        """First office, in config order, located in a state."""
        for office in self.offices():
            if office.state == state:
                return office
        return None

    def office_by_state(self, state: str) -> Office:
        office = self.find_office_by_state(state)
        if office is None:
            raise OfficeNotFoundError(f"state '{state}' is not serviced by any carrier")
        return office

    def hub_of(self, carrier: str) -> Office:
        hub = self.hubs.get(carrier)
        if hub is None:
            raise OfficeNotFoundError(f"no hub office defined for carrier {carrier}", carrier=carrier)
        return hub

    def compliance_user(self, carrier: str) -> str:
        entry = self.carriers.get(carrier)
        if entry is not None and entry.compliance_user:
            return entry.compliance_user
        return self.monitoring.compliance_user

    def route(self, route_number: str) -> Route:
        route = self.routes.get(route_number)
        if route is None:
            raise RouteNotFoundError(f"route {route_number} is not defined", route_nbr=route_number)
        return route

    def ground_route(self, office: Office) -> Route:
        """Local pickup and delivery route of an office."""
        for route in self.routes.values():
            if route.route_type == RouteType.GROUND and route.from_office is office:
                return route
        raise RouteNotFoundError(f"no local route found at {office.carrier} {office.iata}")

    def air_route(self, from_office: Office, to_office: Office) -> Route:
        for route in self.routes.values():
            if (
                route.route_type == RouteType.AIR
                and route.from_office is from_office
                and route.to_office is to_office
            ):
                return route
        raise RouteNotFoundError(
            f"no air route found from {from_office.carrier} {from_office.iata} to {to_office.iata}"
        )

    def is_monitored(self, handling_cd: str, product: Optional[str]) -> bool:
        """Perishable goods with a registered threshold travel in freezers."""
        return handling_cd == PERISHABLE and bool(product) and product in self.thresholds

    def vehicle_of(self, route: Route) -> Container:
        return self.containers[route.vehicle_uid]


# ============================================================
# BUILDER
# ============================================================

def _office_state(description: str) -> str:
    tokens = description.split(",")
    if len(tokens) > 1:
        return tokens[1].strip()
    return ""


def _build_carrier(name: str, carrier_config) -> Carrier:
    carrier = Carrier(
        name=name,
        description=carrier_config.description,
        compliance_user=carrier_config.compliance_user,
    )
    for iata, office_config in carrier_config.offices.items():
        carrier.offices[iata] = Office(
            iata=iata,
            carrier=name,
            hub=office_config.hub,
            description=office_config.description,
            state=_office_state(office_config.description),
            gmt_offset=normalize_gmt_offset(office_config.gmt_offset),
            latitude=office_config.latitude,
            longitude=office_config.longitude,
        )
    return carrier


def _find_hub(carrier: Carrier) -> Office:
    hubs = [office for office in carrier.offices.values() if office.hub]
    if len(hubs) != 1:
        raise ConfigError(
            f"carrier {carrier.name} must have exactly one hub office, found {len(hubs)}"
        )
    return hubs[0]


class NetworkBuilder:
    """Builds routes and containers for every carrier of a network config."""

    def __init__(self, config: NetworkConfig):
        self.config = config
        self.model = NetworkModel(monitoring=config.monitoring)

    def build(self) -> NetworkModel:
        for name, product in self.config.products.items():
            self.model.thresholds[name] = Threshold(
                name=name,
                item_type=product.handling_cd,
                min_value=product.min_value,
                max_value=product.max_value,
                unit=UNITS.get(product.handling_cd, ""),
            )

        for name, carrier_config in self.config.carriers.items():
            carrier = _build_carrier(name, carrier_config)
            self.model.carriers[name] = carrier
            self.model.hubs[name] = _find_hub(carrier)

        for carrier in self.model.carriers.values():
            self._create_routes(carrier)

        logger.info(
            "network_built",
            carriers=len(self.model.carriers),
            routes=len(self.model.routes),
            containers=len(self.model.containers),
            thresholds=len(self.model.thresholds),
        )
        return self.model

    def _create_routes(self, carrier: Carrier):
        hub = self.model.hubs[carrier.name]
        seq = 0
        for office in carrier.offices.values():
            if not office.hub:
                seq += 1
                to_hub = self._add_route(
                    f"{carrier.name}{seq:03d}", RouteType.AIR, TO_HUB_DEPART,
                    arrival_time(TO_HUB_DEPART, office, hub), office, hub,
                )
                self._assign_containers(to_hub)

                # Return flight owned by the hub reuses the same aircraft
                seq += 1
                from_hub = self._add_route(
                    f"{carrier.name}{seq:03d}", RouteType.AIR, FROM_HUB_DEPART,
                    arrival_time(FROM_HUB_DEPART, hub, office), hub, office,
                )
                from_hub.vehicle_uid = to_hub.vehicle_uid

            seq += 1
            ground = self._add_route(
                f"{carrier.name}{seq:03d}", RouteType.GROUND, GROUND_DEPART,
                GROUND_ARRIVAL, office, office,
            )
            self._assign_containers(ground)

    def _add_route(
        self,
        route_number: str,
        route_type: RouteType,
        depart: str,
        arrival: str,
        from_office: Office,
        to_office: Office,
    ) -> Route:
        route = Route(
            route_number=route_number,
            route_type=route_type,
            scheduled_depart=depart,
            scheduled_arrival=arrival,
            from_office=from_office,
            to_office=to_office,
        )
        self.model.routes[route_number] = route
        from_office.routes.append(route_number)
        return route

    def _add_container(
        self,
        uid: str,
        kind: ContainerKind,
        parent: Optional[Container] = None,
        product: Optional[str] = None,
    ) -> Container:
        container = Container(uid=uid, kind=kind, product=product)
        self.model.containers[uid] = container
        if parent is not None:
            parent.children.append(uid)
        return container

    def _assign_containers(self, route: Route):
        seq = 0
        vehicle = self._add_container(f"{route.route_number}{seq:03d}", ContainerKind.VEHICLE)
        for threshold in self.model.thresholds.values():
            parent = vehicle
            if route.route_type == RouteType.AIR:
                seq += 1
                parent = self._add_container(
                    f"{route.route_number}{seq:03d}", ContainerKind.ULD, parent=vehicle
                )
            seq += 1
            self._add_container(
                f"{route.route_number}{seq:03d}", ContainerKind.FREEZER,
                parent=parent, product=threshold.name,
            )
        route.vehicle_uid = vehicle.uid


def build_network(config: NetworkConfig) -> NetworkModel:
    """
    Build the in-memory network model.

    Raises:
        ConfigError: If a carrier does not have exactly one hub office
    """
    return NetworkBuilder(config).build()
