# coldchain/graph/store.py
"""
Graph store for persisting and querying the logistics graph.

Every node or edge write is committed on its own. Callers never batch
writes across a loop, so a failure leaves all earlier writes persisted.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.engine import SessionLocal
from ..db.schema import node_table, edge_table
from ..errors import PersistenceError
from ..logging import get_logger
from .models import Node, Edge, Entity, NODE_KEYS, make_identifier
from . import query as q

logger = get_logger(__name__)

Path = Tuple[Entity, ...]


def _sort_key(value: Any) -> Tuple[int, Any]:
    # None sorts first; numbers before strings so mixed values never raise
    if value is None:
        return (0, 0)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (1, value)
    return (2, str(value))


class GraphStore:
    """
    Persistent store for the logistics property graph.

    Nodes are unique by (type, identifier), where identifier is built from
    the key attributes in NODE_KEYS.
    """

    def __init__(self, session: Optional[Session] = None):
        """
        Initialize graph store.

        Args:
            session: Optional SQLAlchemy session (creates new if not provided)
        """
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> Session:
        """Get or create session."""
        if self._session is None:
            self._session = SessionLocal()
        return self._session

    def close(self):
        """Close session if we own it."""
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _commit(self, action: str):
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("graph_commit_failed", action=action, error=str(e))
            raise PersistenceError(f"commit failed for {action}: {e}") from e

    # ============================================================
    # NODE OPERATIONS
    # ============================================================

    def create_node(self, type: str, attrs: Dict[str, Any], identifier: Optional[str] = None) -> Node:
        """
        Create and commit a node.

        Args:
            type: Node type (Office, Route, Package, ...)
            attrs: Node attributes, must include the type's key attributes
            identifier: Explicit identifier for types without a key

        Returns:
            Created Node
        """
        identifier = identifier or make_identifier(type, attrs)
        if identifier is None:
            raise ValueError(f"{type} node requires key attributes {NODE_KEYS.get(type)}")
        now = datetime.now(timezone.utc)

        try:
            result = self.session.execute(
                insert(node_table).values(
                    type=type,
                    identifier=identifier,
                    attrs=dict(attrs),
                    created_at=now,
                )
            )
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"insert {type} node {identifier} failed: {e}") from e
        self._commit(f"node {type}:{identifier}")

        return Node(
            id=result.inserted_primary_key[0],
            type=type,
            identifier=identifier,
            attrs=dict(attrs),
            created_at=now,
        )

    def get_node_by_key(self, type: str, key: Dict[str, Any]) -> Optional[Node]:
        """
        Get node by type and primary key values.

        Args:
            type: Node type
            key: Key attributes, e.g. {"carrier": "SLS", "iata": "DEN"}

        Returns:
            Node or None if not found
        """
        identifier = make_identifier(type, key)
        if identifier is None:
            raise ValueError(f"{type} key requires {NODE_KEYS.get(type)}, got {sorted(key)}")
        try:
            row = self.session.execute(
                select(node_table).where(
                    node_table.c.type == type,
                    node_table.c.identifier == identifier,
                )
            ).fetchone()
        except SQLAlchemyError as e:
            raise PersistenceError(f"lookup {type} {identifier} failed: {e}") from e
        return self._row_to_node(row) if row else None

    # ============================================================
    # EDGE OPERATIONS
    # ============================================================

    def create_edge(
        self,
        type: str,
        from_node: Node,
        to_node: Node,
        attrs: Optional[Dict[str, Any]] = None,
    ) -> Edge:
        """
        Create and commit a directed edge.

        Args:
            type: Edge type (departs, contains, measures, ...)
            from_node: Source node
            to_node: Target node
            attrs: Edge attributes

        Returns:
            Created Edge
        """
        now = datetime.now(timezone.utc)
        attrs = dict(attrs or {})

        try:
            result = self.session.execute(
                insert(edge_table).values(
                    type=type,
                    src=from_node.id,
                    dst=to_node.id,
                    attrs=attrs,
                    created_at=now,
                )
            )
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"insert {type} edge failed: {e}") from e
        self._commit(f"edge {type} {from_node.identifier}->{to_node.identifier}")

        return Edge(
            id=result.inserted_primary_key[0],
            type=type,
            src=from_node.id,
            dst=to_node.id,
            attrs=attrs,
            created_at=now,
        )

    # ============================================================
    # QUERIES
    # ============================================================

    def query(self, query: q.GraphQuery) -> List[Any]:
        """
        Evaluate a GraphQuery.

        Returns:
            Entities at the end of the traversal, attribute values for a
            terminal values() step, or lists of entities for path()
        """
        start = query.start
        try:
            paths = self._start(start.name, query.steps[1:])
            for step in query.steps[1:]:
                if step.kind == q.HAS:
                    paths = [p for p in paths if p[-1].get(step.name) == step.value]
                elif step.kind in (q.OUT_EDGES, q.IN_EDGES):
                    paths = self._expand_edges(paths, step.kind == q.OUT_EDGES, step.name)
                elif step.kind in (q.OUT_VERTEX, q.IN_VERTEX):
                    paths = self._expand_vertex(paths, step.kind == q.OUT_VERTEX)
                elif step.kind == q.ORDER_BY:
                    # stable sort keeps insertion order for ties
                    paths = sorted(
                        paths,
                        key=lambda p: _sort_key(p[-1].get(step.name)),
                        reverse=step.descending,
                    )
                elif step.kind == q.LIMIT:
                    paths = paths[: step.value]
                elif step.kind == q.VALUES:
                    return [p[-1].get(step.name) for p in paths if step.name in p[-1].attrs]
                elif step.kind == q.PATH:
                    return [list(p) for p in paths]
        except SQLAlchemyError as e:
            raise PersistenceError(f"graph query failed: {e}") from e
        return [p[-1] for p in paths]

    def _start(self, node_type: str, steps: Iterable[q.Step]) -> List[Path]:
        stmt = select(node_table).where(node_table.c.type == node_type)

        # Push a full key match down to the identifier column
        leading = {}
        for step in steps:
            if step.kind != q.HAS:
                break
            leading[step.name] = step.value
        identifier = make_identifier(node_type, leading)
        if identifier is not None:
            stmt = stmt.where(node_table.c.identifier == identifier)

        rows = self.session.execute(stmt.order_by(node_table.c.id)).fetchall()
        return [(self._row_to_node(row),) for row in rows]

    def _expand_edges(self, paths: List[Path], outgoing: bool, edge_type: Optional[str]) -> List[Path]:
        node_ids = {p[-1].id for p in paths if isinstance(p[-1], Node)}
        if not node_ids:
            return []
        column = edge_table.c.src if outgoing else edge_table.c.dst
        stmt = select(edge_table).where(column.in_(node_ids))
        if edge_type:
            stmt = stmt.where(edge_table.c.type == edge_type)
        rows = self.session.execute(stmt.order_by(edge_table.c.id)).fetchall()

        by_node: Dict[int, List[Edge]] = {}
        for row in rows:
            edge = self._row_to_edge(row)
            by_node.setdefault(edge.src if outgoing else edge.dst, []).append(edge)

        expanded = []
        for p in paths:
            for edge in by_node.get(p[-1].id, []):
                expanded.append(p + (edge,))
        return expanded

    def _expand_vertex(self, paths: List[Path], source: bool) -> List[Path]:
        edges = [p[-1] for p in paths if isinstance(p[-1], Edge)]
        nodes = self._fetch_nodes({e.src if source else e.dst for e in edges})
        expanded = []
        for p in paths:
            if not isinstance(p[-1], Edge):
                continue
            node = nodes.get(p[-1].src if source else p[-1].dst)
            if node is not None:
                expanded.append(p + (node,))
        return expanded

    def _fetch_nodes(self, node_ids: Iterable[int]) -> Dict[int, Node]:
        node_ids = set(node_ids)
        if not node_ids:
            return {}
        rows = self.session.execute(
            select(node_table).where(node_table.c.id.in_(node_ids))
        ).fetchall()
        return {row.id: self._row_to_node(row) for row in rows}

    @staticmethod
    def _row_to_node(row) -> Node:
        return Node(
            id=row.id,
            type=row.type,
            identifier=row.identifier,
            attrs=dict(row.attrs or {}),
            created_at=row.created_at,
        )

    @staticmethod
    def _row_to_edge(row) -> Edge:
        return Edge(
            id=row.id,
            type=row.type,
            src=row.src,
            dst=row.dst,
            attrs=dict(row.attrs or {}),
            created_at=row.created_at,
        )

