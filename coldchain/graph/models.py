# coldchain/graph/models.py
"""
Graph models for the logistics property graph.

Core entities:
- Node: typed vertex keyed by (type, identifier), e.g. Office "SLS:DEN"
- Edge: typed directed relationship carrying event attributes
"""

from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union
from dataclasses import dataclass, field

# Primary key attributes per node type. The identifier column is the
# key values joined with ":".
NODE_KEYS: Dict[str, Tuple[str, ...]] = {
    "Threshold": ("name",),
    "Carrier": ("name",),
    "Office": ("carrier", "iata"),
    "Route": ("routeNumber",),
    "Container": ("uid",),
    "Package": ("uid",),
    "Address": ("uid",),
    "Content": ("uid",),
}


def make_identifier(node_type: str, attrs: Dict[str, Any]) -> Optional[str]:
    """
    Build the identifier of a node from its key attributes.

    Returns None if the type has no key or a key attribute is missing.
    """
    keys = NODE_KEYS.get(node_type)
    if not keys or any(k not in attrs for k in keys):
        return None
    return ":".join(str(attrs[k]) for k in keys)


@dataclass
class Node:
    """Graph node handle."""
    id: int
    type: str  # Carrier, Office, Route, Container, Package, ...
    identifier: str
    attrs: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def get(self, name: str, default: Any = None) -> Any:
        return self.attrs.get(name, default)


@dataclass
class Edge:
    """Graph edge handle."""
    id: int
    type: str  # departs, arrives, contains, measures, ...
    src: int  # Source node ID
    dst: int  # Destination node ID
    attrs: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def get(self, name: str, default: Any = None) -> Any:
        return self.attrs.get(name, default)


Entity = Union[Node, Edge]
