# coldchain/graph/query.py
"""
Typed graph query builder.

A GraphQuery is an immutable chain of steps evaluated by GraphStore.query.
Supported steps mirror the traversals the simulator needs:

    GraphQuery.nodes("Route", routeNumber="SLS003") start at matching nodes
        .out_edges("departs")                    follow outgoing edges
        .order_by("eventTimestamp", descending=True)
        .limit(1)
        .values("eventTimestamp")                collect attribute values

Other steps: has (equality filter), in_edges, out_vertex/in_vertex (edge to
its source/target node), out/in_ (node to adjacent nodes) and path (collect
alternating node/edge sequences).
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class Step:
    """One step of a traversal."""
    kind: str
    name: Optional[str] = None
    value: Any = None
    descending: bool = False


START = "start"
HAS = "has"
OUT_EDGES = "out_edges"
IN_EDGES = "in_edges"
OUT_VERTEX = "out_vertex"
IN_VERTEX = "in_vertex"
ORDER_BY = "order_by"
LIMIT = "limit"
VALUES = "values"
PATH = "path"

TERMINAL_STEPS = {VALUES, PATH}


@dataclass(frozen=True)
class GraphQuery:
    """Immutable traversal description."""
    steps: Tuple[Step, ...] = field(default_factory=tuple)

    @classmethod
    def nodes(cls, node_type: str, **filters: Any) -> "GraphQuery":
        """Start at nodes of a type, optionally filtered by attribute equality."""
        query = cls((Step(START, name=node_type),))
        for name, value in filters.items():
            query = query.has(name, value)
        return query

    def _append(self, step: Step) -> "GraphQuery":
        if self.steps and self.steps[-1].kind in TERMINAL_STEPS:
            raise ValueError(f"cannot add '{step.kind}' after terminal step '{self.steps[-1].kind}'")
        return GraphQuery(self.steps + (step,))

    def has(self, name: str, value: Any) -> "GraphQuery":
        return self._append(Step(HAS, name=name, value=value))

    def out_edges(self, edge_type: Optional[str] = None) -> "GraphQuery":
        return self._append(Step(OUT_EDGES, name=edge_type))

    def in_edges(self, edge_type: Optional[str] = None) -> "GraphQuery":
        return self._append(Step(IN_EDGES, name=edge_type))

    def out_vertex(self) -> "GraphQuery":
        """From an edge to its source node."""
        return self._append(Step(OUT_VERTEX))

    def in_vertex(self) -> "GraphQuery":
        """From an edge to its target node."""
        return self._append(Step(IN_VERTEX))

    def out(self, edge_type: Optional[str] = None) -> "GraphQuery":
        """From a node to the targets of its outgoing edges."""
        return self.out_edges(edge_type).in_vertex()

    def in_(self, edge_type: Optional[str] = None) -> "GraphQuery":
        """From a node to the sources of its incoming edges."""
        return self.in_edges(edge_type).out_vertex()

    def order_by(self, name: str, descending: bool = False) -> "GraphQuery":
        return self._append(Step(ORDER_BY, name=name, descending=descending))

    def limit(self, count: int) -> "GraphQuery":
        if count < 0:
            raise ValueError("limit must not be negative")
        return self._append(Step(LIMIT, value=count))

    def values(self, name: str) -> "GraphQuery":
        return self._append(Step(VALUES, name=name))

    def path(self) -> "GraphQuery":
        return self._append(Step(PATH))

    @property
    def start(self) -> Step:
        if not self.steps or self.steps[0].kind != START:
            raise ValueError("query must start with GraphQuery.nodes()")
        return self.steps[0]
