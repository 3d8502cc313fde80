# simulation/__init__.py
"""
Simulation module for the cold-chain transit simulator.

1. NETWORK (config.py, network.py, schedule.py, containers.py)
   - Builds carriers, hub-and-spoke offices, routes and nested containers
     from a JSON network definition
   - Computes cross-timezone schedules and occurrence times

2. PERSISTENCE (graph_seeder.py, shipping.py)
   - Seeds the graph with the network topology
   - Creates shipping labels and package nodes

3. TRANSIT (transit.py, compliance.py, timeline.py)
   - Moves a package from pickup to delivery, recording containment periods
   - Injects randomized temperature measurements for monitored freezers
   - Reads back package timelines and threshold violations

Usage:
    from simulation import load_network_config, build_network, seed_network
    network = build_network(load_network_config("config/network.json"))
    seed_network(network)

    from simulation import TransitSimulator
    result = TransitSimulator(store, network, notifier).pickup_package(uid)
"""

from .config import NetworkConfig, load_network_config, parse_network_config
from .network import NetworkModel, NetworkBuilder, build_network
from .graph_seeder import GraphSeeder, seed_network
from .shipping import PackageRequest, PackageResponse, ShippingService
from .transit import TransitResult, TransitSimulator, TransitState
from .timeline import TimelineQuery, query_threshold_violations

__all__ = [
    # Network definition
    "NetworkConfig",
    "load_network_config",
    "parse_network_config",
    "NetworkModel",
    "NetworkBuilder",
    "build_network",
    # Graph seeding
    "GraphSeeder",
    "seed_network",
    # Shipping
    "PackageRequest",
    "PackageResponse",
    "ShippingService",
    # Transit
    "TransitResult",
    "TransitSimulator",
    "TransitState",
    # Timeline
    "TimelineQuery",
    "query_threshold_violations",
]
