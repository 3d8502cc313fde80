# simulation/schedule.py
"""
Schedule calculator.

Local "HH:MM" schedules and "+HH:MM" GMT offsets are turned into absolute
timestamps. Parsing fails soft: a malformed offset is treated as zero and an
unparseable clock time is replaced by the current time, so none of these
functions raise on bad schedule strings.

Distances use raw coordinate differences, not geodesic distance:
    flight hours      = sqrt(dlat^2 + dlon^2) * 4 / 30
    local delay hours = 7 * (|dlat| + |dlon|) / 0.4
"""

import math
import random
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, Tuple

_OFFSET_RE = re.compile(r"^([+-])(\d{1,2})(?::?(\d{2}))?$")
_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

# Local pickup and delivery start of day
PUD_START = "08:00"

# Random GPS spread around an office, in degrees
GPS_SPREAD = 0.2


class Located(Protocol):
    latitude: float
    longitude: float


class Scheduled(Located, Protocol):
    gmt_offset: str


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def normalize_gmt_offset(offset: str) -> str:
    """Prefix an offset with "+" when it has no sign."""
    offset = (offset or "").strip()
    if offset and offset[0] not in "+-":
        return "+" + offset
    return offset


def parse_gmt_offset(offset: str) -> timezone:
    """
    Fixed timezone for a "+HH:MM" offset.

    Malformed offsets yield UTC.
    """
    match = _OFFSET_RE.match(normalize_gmt_offset(offset))
    if not match:
        return timezone.utc
    sign = -1 if match.group(1) == "-" else 1
    hours = int(match.group(2))
    minutes = int(match.group(3) or 0)
    if hours > 23 or minutes > 59:
        return timezone.utc
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def parse_clock(value: str) -> Optional[Tuple[int, int]]:
    """(hour, minute) of an "HH:MM" string, or None if unparseable."""
    match = _CLOCK_RE.match((value or "").strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def flight_time_hours(from_office: Located, to_office: Located) -> float:
    dlat = from_office.latitude - to_office.latitude
    dlon = from_office.longitude - to_office.longitude
    return math.sqrt(dlat * dlat + dlon * dlon) * 4.0 / 30.0


def arrival_time(depart_local: str, from_office: Scheduled, to_office: Scheduled) -> str:
    """
    Scheduled local arrival "HH:MM" at the destination office.

    The departure is converted from the origin's offset to the destination's,
    then the flight time is added in whole minutes. Wraps across midnight.

    Example:
        16:00 from DEN (-07:00, 39.7392,-104.9903) to JFK (-05:00,
        40.7128,-74.0060) arrives at "22:07".
    """
    from_tz = parse_gmt_offset(from_office.gmt_offset)
    to_tz = parse_gmt_offset(to_office.gmt_offset)

    clock = parse_clock(depart_local)
    if clock is None:
        depart = datetime.now(from_tz)
    else:
        depart = datetime(2000, 1, 1, clock[0], clock[1], tzinfo=from_tz)

    minutes = int(flight_time_hours(from_office, to_office) * 60)
    arrival = depart.astimezone(to_tz) + timedelta(minutes=minutes)
    return f"{arrival.hour:02d}:{arrival.minute:02d}"


def scheduled_time_of_day(
    schedule: str,
    gmt_offset: str,
    day_offset: int = 0,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Today's occurrence of a local "HH:MM" schedule, plus day_offset days.

    "Today" is the current date in the given offset. An unparseable
    schedule yields the current time.
    """
    tz = parse_gmt_offset(gmt_offset)
    today = _now(now).astimezone(tz)
    clock = parse_clock(schedule)
    if clock is None:
        scheduled = today
    else:
        scheduled = today.replace(hour=clock[0], minute=clock[1], second=0, microsecond=0)
    if day_offset > 0:
        scheduled = scheduled + timedelta(days=day_offset)
    return scheduled


def random_occurrence_time(
    scheduled_local: str,
    gmt_offset: str,
    span_minutes: float,
    rng: random.Random,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Today's scheduled time plus uniform jitter in [-span, +span] minutes.

    Jitter is truncated to whole seconds.
    """
    nominal = scheduled_time_of_day(scheduled_local, gmt_offset, now=now)
    jitter_minutes = rng.random() * 2.0 * span_minutes - span_minutes
    return nominal + timedelta(seconds=int(jitter_minutes * 60))


def advance_to_after(estimated: datetime, after: datetime) -> datetime:
    """
    Move a time forward by whole days until it is strictly after a reference.

    The first jump covers the calendar-date difference (at least one day), so
    the time of day of `estimated` is kept, including across year boundaries.
    """
    if estimated > after:
        return estimated

    tz = estimated.tzinfo or timezone.utc
    days = (after.astimezone(tz).date() - estimated.date()).days
    corrected = estimated + timedelta(days=max(days, 1))
    while corrected <= after:
        corrected = corrected + timedelta(days=1)
    return corrected


def local_delay_hours(latitude: float, longitude: float, office: Located) -> float:
    """Hours to drive between an address and its office."""
    dlat = abs(latitude - office.latitude)
    dlon = abs(longitude - office.longitude)
    return 7.0 * (dlat + dlon) / 0.4


def estimate_pud_time(
    gmt_offset: str,
    delay_hours: float,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Estimated pickup or delivery time.

    Rounds start at 08:00 local; if today's round already started, the
    estimate moves to tomorrow. The local delay is added in whole minutes.
    """
    current = _now(now)
    start = scheduled_time_of_day(PUD_START, gmt_offset, now=current)
    if start < current:
        start = start + timedelta(hours=24)
    return start + timedelta(minutes=int(delay_hours * 60))


def random_gps_location(office: Located, rng: random.Random) -> Tuple[float, float]:
    """Random (latitude, longitude) within GPS_SPREAD degrees of an office."""
    dlat = -GPS_SPREAD + rng.random() * 2 * GPS_SPREAD
    dlon = -GPS_SPREAD + rng.random() * 2 * GPS_SPREAD
    return round(office.latitude + dlat, 4), round(office.longitude + dlon, 4)
