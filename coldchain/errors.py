# coldchain/errors.py
"""
Error taxonomy for the transit simulator.

- ConfigError: malformed network definition, fatal at bootstrap
- NotFoundError: office/package/route/container lookup failed, fatal for the
  current simulation request
- PersistenceError: graph store unreachable or commit failed
- NotificationError: compliance sink failure, always logged and swallowed by
  the notifier

Unparseable GMT offsets and schedule times never raise; see simulation.schedule.
"""

from typing import Optional


class ColdChainError(Exception):
    """Base exception for simulator errors."""
    pass


class ConfigError(ColdChainError):
    """Raised when the network definition cannot be loaded or validated."""
    pass


class NotFoundError(ColdChainError, LookupError):
    """Base exception for failed lookups."""
    pass


class OfficeNotFoundError(NotFoundError):
    """Raised when no office serves a state or an office node is missing."""
    def __init__(self, message: str, carrier: Optional[str] = None, iata: Optional[str] = None):
        self.carrier = carrier
        self.iata = iata
        super().__init__(message)


class PackageNotFoundError(NotFoundError):
    """Raised when a package node does not exist."""
    def __init__(self, uid: str):
        self.uid = uid
        super().__init__(f"package node is not found for {uid}")


class RouteNotFoundError(NotFoundError):
    """Raised when a route or its recorded occurrences are missing."""
    def __init__(self, message: str, route_nbr: Optional[str] = None):
        self.route_nbr = route_nbr
        super().__init__(message)


class ContainerNotFoundError(NotFoundError):
    """Raised when no container on a route can hold a package."""
    def __init__(self, route_nbr: str, product: Optional[str]):
        self.route_nbr = route_nbr
        self.product = product
        super().__init__(f"no container found for {route_nbr} and {product or '<unmonitored>'}")


class PersistenceError(ColdChainError):
    """Raised when the graph store fails to read or commit."""
    pass


class NotificationError(ColdChainError):
    """Raised when the compliance notification sink cannot be reached."""
    def __init__(self, message: str, status: Optional[str] = None):
        self.status = status
        super().__init__(message)


class TransitStateError(ColdChainError):
    """Raised on an illegal transit state transition."""
    pass
