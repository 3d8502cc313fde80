# simulation/occurrences.py
"""
Route occurrences.

A dated instance of a route's schedule is stored as a "departs" edge
(Route -> from Office) and an "arrives" edge (Route -> to Office), each with
an eventTimestamp in epoch seconds. Occurrences are append-only; the latest
one is the edge with the greatest timestamp.
"""

import random
from datetime import datetime, timezone
from typing import Callable, Optional

from coldchain.graph import GraphQuery, GraphStore, Node, as_time, to_epoch
from coldchain.logging import get_logger

from .schedule import advance_to_after, random_occurrence_time

logger = get_logger(__name__)

DEPARTS = "departs"
ARRIVES = "arrives"

# Jitter around the scheduled time of a synthesized occurrence
OCCURRENCE_SPAN_MINUTES = 5

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OccurrenceRecorder:
    """Reads and appends departs/arrives occurrences of routes."""

    def __init__(self, store: GraphStore, rng: random.Random, clock: Clock = utc_now):
        self.store = store
        self.rng = rng
        self.clock = clock

    def latest(self, route_number: str, edge_type: str) -> Optional[datetime]:
        """Timestamp of the latest occurrence, or None if none was recorded."""
        values = self.store.query(
            GraphQuery.nodes("Route", routeNumber=route_number)
            .out_edges(edge_type)
            .order_by("eventTimestamp", descending=True)
            .limit(1)
            .values("eventTimestamp")
        )
        if not values:
            return None
        return as_time(values[0])

    def record(
        self,
        route: Node,
        office: Node,
        edge_type: str,
        after: Optional[datetime] = None,
    ) -> datetime:
        """
        Append a jittered occurrence of today's schedule.

        The occurrence is moved forward by whole days until it is after
        `after` when that reference is given.

        Returns:
            Timestamp of the new occurrence
        """
        schedule = route.get("scheduledDepart" if edge_type == DEPARTS else "scheduledArrival", "")
        occurred = random_occurrence_time(
            schedule,
            office.get("gmtOffset", ""),
            OCCURRENCE_SPAN_MINUTES,
            self.rng,
            now=self.clock(),
        )
        if after is not None:
            occurred = advance_to_after(occurred, after)

        self.store.create_edge(edge_type, route, office, {"eventTimestamp": to_epoch(occurred)})
        logger.debug(
            "route_occurrence_recorded",
            route=route.get("routeNumber"),
            edge_type=edge_type,
            office=office.get("iata"),
            event_time=occurred.isoformat(),
        )
        return occurred
