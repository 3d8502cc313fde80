# simulation/containers.py
"""
Container assignment resolver.

Picks the container a package rides in on a route: the route's Vehicle for
unmonitored goods, or the Freezer tagged with the package's product for
monitored perishables. The descent is generic, so it works for any nesting
depth (Vehicle -> Freezer on the ground, Vehicle -> ULD -> Freezer in the air).
"""

from typing import Optional

from coldchain.errors import ContainerNotFoundError

from .network import Container, ContainerKind, NetworkModel, Route


def find_tagged_container(network: NetworkModel, uid: str, product: str) -> Optional[Container]:
    """Depth-first search below `uid` for the Freezer monitoring a product."""
    container = network.containers.get(uid)
    if container is None:
        return None
    if container.kind == ContainerKind.FREEZER and container.product == product:
        return container
    for child_uid in container.children:
        found = find_tagged_container(network, child_uid, product)
        if found is not None:
            return found
    return None


def resolve_container(
    network: NetworkModel,
    route: Route,
    handling_cd: str,
    product: Optional[str],
) -> Container:
    """
    Resolve the container for a package on a route.

    Raises:
        ContainerNotFoundError: If the route has no vehicle, or no freezer
            monitors the package's product
    """
    vehicle = network.containers.get(route.vehicle_uid)
    if vehicle is None:
        raise ContainerNotFoundError(route.route_number, product)

    if not network.is_monitored(handling_cd, product):
        return vehicle

    found = find_tagged_container(network, vehicle.uid, product)
    if found is None:
        raise ContainerNotFoundError(route.route_number, product)
    return found
