# simulation/graph_seeder.py
"""
Seeds the logistics graph with the network topology.

Creates graph nodes and edges for:
- Threshold nodes (one per monitored product)
- Carrier nodes
- Office nodes (Carrier -operates-> Office)
- Route nodes (Carrier -schedules-> Route) with today's departs/arrives
- Container nodes: Office -builds-> Vehicle, Vehicle -assigned-> Route,
  parent -contains-> child (childType "Container")

Seeding is skipped when carriers already exist in the graph.
"""

import random
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from coldchain.graph import GraphQuery, GraphStore, Node, to_epoch
from coldchain.logging import get_logger

from .network import Container, NetworkModel, Route, RouteType
from .occurrences import ARRIVES, DEPARTS, Clock, OccurrenceRecorder, utc_now
from .schedule import random_occurrence_time

logger = get_logger(__name__)

# Vehicles are built and assigned about an hour before departure
BUILD_LEAD = timedelta(hours=1)
BUILD_SPAN_MINUTES = 10
ARRIVAL_SPAN_MINUTES = 5


class GraphSeeder:
    """
    Persists a NetworkModel into the graph.

    This makes the graph useful for:
    1. Transit simulation: routes, occurrences and containers to ride in
    2. Package timelines: container paths and route assignments
    """

    def __init__(
        self,
        network: NetworkModel,
        graph_store: GraphStore,
        rng: Optional[random.Random] = None,
        clock: Clock = utc_now,
    ):
        self.network = network
        self.graph = graph_store
        self.rng = rng or random.Random()
        self.clock = clock
        self.occurrences = OccurrenceRecorder(self.graph, self.rng, clock)

        # Track created nodes for edge creation
        self.carrier_nodes: Dict[str, Node] = {}
        self.office_nodes: Dict[Tuple[str, str], Node] = {}
        self.route_nodes: Dict[str, Node] = {}

    def is_seeded(self) -> bool:
        return bool(self.graph.query(GraphQuery.nodes("Carrier").limit(1)))

    def seed_network(self) -> Dict[str, Any]:
        """
        Seed graph with the network topology.

        Returns:
            Summary of seeded data
        """
        if self.is_seeded():
            logger.info("graph_seed_skipped", reason="carriers already exist")
            return {"seeded": False, "carriers": 0, "offices": 0, "routes": 0, "containers": 0}

        for threshold in self.network.thresholds.values():
            self.graph.create_node("Threshold", threshold.to_attrs())

        for carrier in self.network.carriers.values():
            carrier_node = self.graph.create_node("Carrier", carrier.to_attrs())
            self.carrier_nodes[carrier.name] = carrier_node
            for office in carrier.offices.values():
                office_node = self.graph.create_node("Office", office.to_attrs())
                self.graph.create_edge("operates", carrier_node, office_node)
                self.office_nodes[(office.carrier, office.iata)] = office_node

        for route in self.network.routes.values():
            self._create_route(route)

        containers = 0
        for route in self.network.routes.values():
            # Hub return flights reuse the outbound vehicle built below
            if route.route_type == RouteType.AIR and route.from_office.hub:
                continue
            containers += self._create_containers(route)

        summary = {
            "seeded": True,
            "carriers": len(self.carrier_nodes),
            "offices": len(self.office_nodes),
            "routes": len(self.route_nodes),
            "containers": containers,
        }
        logger.info("graph_seeded", **summary)
        return summary

    def _office_node(self, carrier: str, iata: str) -> Node:
        return self.office_nodes[(carrier, iata)]

    def _create_route(self, route: Route):
        route_node = self.graph.create_node("Route", route.to_attrs())
        self.route_nodes[route.route_number] = route_node

        from_node = self._office_node(route.carrier, route.from_office.iata)
        to_node = self._office_node(route.carrier, route.to_office.iata)
        self.occurrences.record(route_node, from_node, DEPARTS)
        self.occurrences.record(route_node, to_node, ARRIVES)
        self.graph.create_edge("schedules", self.carrier_nodes[route.carrier], route_node)

    def _timestamp(self, schedule: str, gmt_offset: str, span: float) -> int:
        return to_epoch(random_occurrence_time(schedule, gmt_offset, span, self.rng, now=self.clock()))

    def _create_containers(self, route: Route) -> int:
        """Create the vehicle of a route and everything nested in it."""
        vehicle = self.network.vehicle_of(route)
        vehicle_node = self.graph.create_node("Container", vehicle.to_attrs())

        built = self._timestamp(route.scheduled_depart, route.from_office.gmt_offset, BUILD_SPAN_MINUTES)
        built -= int(BUILD_LEAD.total_seconds())
        origin = self._office_node(route.carrier, route.from_office.iata)
        self.graph.create_edge("builds", origin, vehicle_node, {"eventTimestamp": built})
        self.graph.create_edge(
            "assigned", vehicle_node, self.route_nodes[route.route_number], {"eventTimestamp": built}
        )

        if route.route_type == RouteType.AIR:
            # Same aircraft flies the return leg from the hub
            hub = route.to_office
            returning = self.network.air_route(hub, route.from_office)
            hub_built = self._timestamp(returning.scheduled_depart, hub.gmt_offset, BUILD_SPAN_MINUTES)
            hub_built -= int(BUILD_LEAD.total_seconds())
            self.graph.create_edge(
                "builds", self._office_node(route.carrier, hub.iata), vehicle_node,
                {"eventTimestamp": hub_built},
            )
            self.graph.create_edge(
                "assigned", vehicle_node, self.route_nodes[returning.route_number],
                {"eventTimestamp": hub_built},
            )

        return 1 + self._create_children(vehicle, vehicle_node, built)

    def _create_children(self, parent: Container, parent_node: Node, loaded: int) -> int:
        created = 0
        for child_uid in parent.children:
            child = self.network.containers[child_uid]
            child_node = self.graph.create_node("Container", child.to_attrs())
            # Nested containers stay loaded, so there is no outTimestamp
            self.graph.create_edge(
                "contains", parent_node, child_node,
                {"eventTimestamp": loaded, "childType": "Container"},
            )
            created += 1 + self._create_children(child, child_node, loaded)
        return created


def seed_network(
    network: NetworkModel,
    graph_store: GraphStore,
    seed: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Convenience function to seed the graph for a network.

    Args:
        network: Built network model
        graph_store: Target store
        seed: Random seed for occurrence jitter

    Returns:
        Summary of seeded data
    """
    seeder = GraphSeeder(network, graph_store=graph_store, rng=random.Random(seed))
    return seeder.seed_network()
