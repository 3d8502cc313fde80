# simulation/compliance.py
"""
Environmental compliance simulator.

Generates temperature measurements for a monitored container over a rolling
three-day lookahead. Each day covers the leg's scheduled window
[depart - 1h, arrival + 1h]; the window is split into contiguous sub-periods,
at most one of which is a threshold violation.

Measurements are "measures" edges (Container -> Threshold):
    {startTimestamp, eventTimestamp (period end), minValue, maxValue, unit, violated}
"""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from coldchain.graph import GraphQuery, GraphStore, Node, as_time, to_epoch
from coldchain.logging import get_logger

from .network import NetworkModel, Route
from .occurrences import Clock, utc_now
from .schedule import scheduled_time_of_day

logger = get_logger(__name__)

LOOKAHEAD_DAYS = 3
WINDOW_MARGIN = timedelta(hours=1)
# Two windows ending within this tolerance are the same day
IDEMPOTENCE_TOLERANCE = timedelta(hours=1)
# Violations last at most a tenth of the window
MAX_VIOLATION_FRACTION = 10.0
# Violation values start one reading step above the threshold
VALUE_STEP = 0.01


@dataclass
class Measurement:
    """Observed value range over one sub-period."""
    period_start: datetime
    period_end: datetime
    min_value: float
    max_value: float
    violated: bool = False

    def to_attrs(self, unit: str) -> dict:
        return {
            "startTimestamp": to_epoch(self.period_start),
            "eventTimestamp": to_epoch(self.period_end),
            "minValue": self.min_value,
            "maxValue": self.max_value,
            "unit": unit,
            "violated": self.violated,
        }


def random_measurement_range(low: float, high: float, rng: random.Random) -> Tuple[float, float]:
    """Two readings in [low, high] rounded to 2 decimals, as (min, max)."""
    first = round(low + rng.random() * (high - low), 2)
    second = round(low + rng.random() * (high - low), 2)
    return (first, second) if first < second else (second, first)


def random_threshold_violation(
    period_start: datetime,
    period_end: datetime,
    min_value: float,
    max_value: float,
    violation_rate: float,
    rng: random.Random,
) -> List[Measurement]:
    """
    Split a monitoring window into 1-3 contiguous measurements.

    With probability `violation_rate`, one sub-period of random length (at most
    a tenth of the window) reads above the threshold, in
    (max_value, 2 * max_value - min_value]. All other sub-periods read within
    [min_value, max_value].
    """
    start = int(period_start.timestamp())
    end = int(period_end.timestamp())
    tz = period_start.tzinfo

    violation: Optional[Measurement] = None
    violation_length = int(rng.random() * (end - start) / MAX_VIOLATION_FRACTION)
    if rng.random() < violation_rate and violation_length > 0:
        violation_start = start + int(rng.random() * (end - start))
        violation_end = min(violation_start + violation_length, end)
        low, high = random_measurement_range(
            max_value + VALUE_STEP, 2 * max_value - min_value, rng
        )
        violation = Measurement(
            period_start=datetime.fromtimestamp(violation_start, tz=tz),
            period_end=datetime.fromtimestamp(violation_end, tz=tz),
            min_value=low,
            max_value=high,
            violated=True,
        )

    def within(sub_start: datetime, sub_end: datetime) -> Measurement:
        low, high = random_measurement_range(min_value, max_value, rng)
        return Measurement(sub_start, sub_end, low, high, violated=False)

    if violation is None:
        return [within(period_start, period_end)]

    result = []
    if period_start < violation.period_start:
        result.append(within(period_start, violation.period_start))
    result.append(violation)
    if violation.period_end < period_end:
        result.append(within(violation.period_end, period_end))
    return result


def measurement_period(
    scheduled_depart: str,
    scheduled_arrival: str,
    depart_gmt_offset: str,
    arrival_gmt_offset: str,
    day_offset: int,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """
    Monitoring window of a leg on a given day.

    The arrival is the first scheduled arrival on the departure's local date
    at the destination, rolled forward a day when it wraps past midnight.
    """
    depart = scheduled_time_of_day(scheduled_depart, depart_gmt_offset, day_offset, now=now)
    arrival = scheduled_time_of_day(scheduled_arrival, arrival_gmt_offset, now=depart)
    if arrival <= depart:
        arrival = arrival + timedelta(days=1)
    return depart - WINDOW_MARGIN, arrival + WINDOW_MARGIN


class ComplianceSimulator:
    """
    Creates measurement records for monitored containers.

    Usage:
        simulator = ComplianceSimulator(store, network, rng)
        simulator.monitor_leg(freezer_node, route)
    """

    def __init__(
        self,
        store: GraphStore,
        network: NetworkModel,
        rng: random.Random,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.network = network
        self.rng = rng
        self.clock = clock

    @property
    def violation_rate(self) -> float:
        return self.network.monitoring.violation_rate

    def latest_measurement_end(self, container_uid: str) -> Optional[datetime]:
        values = self.store.query(
            GraphQuery.nodes("Container", uid=container_uid)
            .out_edges("measures")
            .order_by("eventTimestamp", descending=True)
            .limit(1)
            .values("eventTimestamp")
        )
        return as_time(values[0]) if values else None

    def is_monitored(self, container_uid: str, window_end: datetime) -> bool:
        """True when measurements already cover the window ending at window_end."""
        latest = self.latest_measurement_end(container_uid)
        return latest is not None and latest >= window_end - IDEMPOTENCE_TOLERANCE

    def monitor_leg(self, container: Node, route: Route) -> List[Measurement]:
        """
        Create measurements for a container over the route's next three days.

        Days already measured are skipped. Containers without a monitored
        product, or whose product has no threshold node, are ignored.

        Returns:
            Measurements created by this call
        """
        product = container.get("monitor")
        if not product:
            return []
        threshold_node = self.store.get_node_by_key("Threshold", {"name": product})
        threshold = self.network.thresholds.get(product)
        if threshold_node is None or threshold is None:
            logger.warning("threshold_not_found", product=product, container=container.identifier)
            return []

        created: List[Measurement] = []
        now = self.clock()
        for day in range(LOOKAHEAD_DAYS):
            window_start, window_end = measurement_period(
                route.scheduled_depart,
                route.scheduled_arrival,
                route.from_office.gmt_offset,
                route.to_office.gmt_offset,
                day,
                now=now,
            )
            if self.is_monitored(container.get("uid"), window_end):
                continue

            measurements = random_threshold_violation(
                window_start,
                window_end,
                threshold.min_value,
                threshold.max_value,
                self.violation_rate,
                self.rng,
            )
            for measurement in measurements:
                self.store.create_edge(
                    "measures", container, threshold_node, measurement.to_attrs(threshold.unit)
                )
            created.extend(measurements)

        if created:
            logger.info(
                "measurements_created",
                container=container.get("uid"),
                route=route.route_number,
                count=len(created),
                violations=sum(1 for m in created if m.violated),
            )
        return created
