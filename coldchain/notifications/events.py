# coldchain/notifications/events.py
"""
Payloads posted to the compliance notification sink.

Timestamps are RFC 3339 in UTC. Empty optional fields are omitted from
the JSON body.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def format_event_time(value: datetime) -> str:
    """RFC 3339 UTC timestamp with a trailing Z."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class PackageTransaction:
    """Custody event for a package: pickup, transfer, transfer ack or delivery."""
    uid: str
    eventTime: str
    latitude: float
    longitude: float
    carrier: Optional[str] = None
    toCarrier: Optional[str] = None
    packageDetail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v not in (None, "")}


@dataclass
class TemperatureUpdate:
    """Threshold measurement of the container a package travelled in."""
    uid: str
    containerID: str
    periodStart: str
    eventTime: str
    minValue: float
    maxValue: float
    inViolation: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
