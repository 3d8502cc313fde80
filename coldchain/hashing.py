# coldchain/hashing.py
"""
Content-addressable identifiers.

Packages, addresses and handling employees are identified by a hash of
their JSON content, so the same input always maps to the same id.
"""

import hashlib
import json
from typing import Any, Union

# Length of short identifiers (hex characters)
SHORT_ID_LENGTH = 16


def compute_sha256(data: Union[bytes, str]) -> str:
    """
    Compute SHA-256 hash of data.

    Args:
        data: Raw bytes or string to hash

    Returns:
        Lowercase hex string of SHA-256 hash (64 characters)
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest().lower()


def content_id(obj: Any) -> str:
    """
    Short deterministic id for a JSON-serializable object.

    Keys are sorted so dict ordering does not change the id.
    """
    payload = json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)
    return compute_sha256(payload)[:SHORT_ID_LENGTH]
