# Graph module - property graph store with typed traversal queries
from .models import Node, Edge, NODE_KEYS
from .query import GraphQuery
from .store import GraphStore
from .values import as_string, as_double, as_bool, as_time, to_epoch

__all__ = [
    # Models
    "Node",
    "Edge",
    "NODE_KEYS",
    # Queries
    "GraphQuery",
    # Store
    "GraphStore",
    # Typed attribute accessors
    "as_string",
    "as_double",
    "as_bool",
    "as_time",
    "to_epoch",
]
