# coldchain/graph/values.py
"""
Typed accessors for persisted attribute values.

Attributes come back from the JSON column untyped. Each accessor fails
closed: a missing or mismatched value yields the documented zero value
instead of raising.

    as_string   -> ""        (non-strings are formatted with str())
    as_double   -> 0.0       (ints and floats accepted, bools rejected)
    as_bool     -> False     (only real booleans accepted)
    as_time     -> None      (epoch seconds to aware UTC datetime)
"""

from datetime import datetime, timezone
from typing import Any, Optional, Union

from ..logging import get_logger
from .models import Entity

logger = get_logger(__name__)


def _raw(source: Union[Entity, Any], name: Optional[str]) -> Any:
    if name is None:
        return source
    return source.get(name)


def as_string(source: Union[Entity, Any], name: Optional[str] = None) -> str:
    """String value of an attribute, "" when absent."""
    value = _raw(source, name)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def as_double(source: Union[Entity, Any], name: Optional[str] = None) -> float:
    """Float value of an attribute, 0.0 when absent or not numeric."""
    value = _raw(source, name)
    if isinstance(value, bool):
        logger.debug("attribute_type_mismatch", attribute=name, expected="double", actual="bool")
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if value is not None:
        logger.debug("attribute_type_mismatch", attribute=name, expected="double", actual=type(value).__name__)
    return 0.0


def as_bool(source: Union[Entity, Any], name: Optional[str] = None) -> bool:
    """Boolean value of an attribute, False when absent or not boolean."""
    value = _raw(source, name)
    if isinstance(value, bool):
        return value
    return False


def as_time(source: Union[Entity, Any], name: Optional[str] = None) -> Optional[datetime]:
    """UTC datetime from an epoch-seconds attribute, None when absent."""
    value = _raw(source, name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def to_epoch(value: datetime) -> int:
    """Epoch seconds for an aware datetime, as persisted on edges."""
    return int(value.timestamp())
