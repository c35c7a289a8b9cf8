"""Serialization utilities for Redis caching.

Snapshots are stored as compact JSON strings so they stay readable with
redis-cli while debugging.

Special Type Handling:
    - pydantic models: dumped in JSON mode
    - datetime/date/time: Converted to ISO format strings
    - Decimal: Converted to float
    - UUID: Converted to string
    - set/frozenset: Converted to sorted list

Usage:
    from postcache.cache.serializer import serialize, deserialize

    payload = serialize(post)          # str
    data = deserialize(payload)        # dict, ready for Post.model_validate
"""

import json
import logging
from datetime import datetime, date, time
from decimal import Decimal
from uuid import UUID
from typing import Any, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def _json_default(obj: Any) -> Any:
    """
    Custom JSON encoder for special types.

    Raises:
        TypeError: If object type is not supported
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")

    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()

    if isinstance(obj, Decimal):
        return float(obj)

    if isinstance(obj, UUID):
        return str(obj)

    if isinstance(obj, (set, frozenset)):
        return sorted(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def serialize(data: Any) -> str:
    """
    Serialize data to a JSON string.

    Args:
        data: Python object to serialize (models, lists of models, dicts)

    Returns:
        JSON string

    Raises:
        ValueError: If serialization fails
    """
    try:
        return json.dumps(data, default=_json_default, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        logger.error(f"JSON serialization failed: {e}", exc_info=True)
        raise ValueError(f"Failed to serialize to JSON: {e}") from e


def deserialize(data: Union[str, bytes]) -> Any:
    """
    Deserialize data from a JSON string.

    Raises:
        ValueError: If the payload is not valid JSON
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8")

    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        logger.error(f"JSON deserialization failed: {e}")
        raise ValueError(f"Failed to deserialize JSON: {e}") from e
