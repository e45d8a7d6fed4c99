"""JSON serialization utilities for audit payloads."""

from __future__ import annotations

import dataclasses
import datetime
import decimal
import json
from enum import Enum

_MAX_ITERABLE_ITEMS = 10_000


def json_default(obj: object) -> object:
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, (datetime.date, datetime.datetime)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, decimal.Decimal):
        if obj == obj.to_integral_value():
            return int(obj)
        return str(obj)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (set, frozenset)):
        # Sorted so identical payloads serialize identically.
        return sorted((str(item) for item in obj))[:_MAX_ITERABLE_ITEMS]
    if isinstance(obj, tuple):
        return list(obj[:_MAX_ITERABLE_ITEMS])
    return str(obj)


def dumps_payload(payload: dict[str, object]) -> str:
    return json.dumps(payload, ensure_ascii=True, sort_keys=True, default=json_default)


def loads_payload(text: str | None) -> dict[str, object]:
    if not text:
        return {}
    data = json.loads(text)
    if not isinstance(data, dict):
        return {"value": data}
    return data
