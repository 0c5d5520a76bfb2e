"""JSON serialization utilities."""

from __future__ import annotations

import dataclasses
import datetime
import decimal
import enum
import json
from itertools import islice

_MAX_ITERABLE_ITEMS = 10_000


def json_default(obj: object) -> object:
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, (datetime.date, datetime.datetime)):
        return obj.isoformat()
    if isinstance(obj, decimal.Decimal):
        # Token amounts: keep integers exact, fall back to string on precision loss.
        if obj == obj.to_integral_value():
            return int(obj)
        f = float(obj)
        if decimal.Decimal(str(f)) != obj:
            return str(obj)
        return f
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, (bytes, bytearray)):
        return "0x" + bytes(obj).hex()
    if isinstance(obj, BaseException):
        return {"error": type(obj).__name__, "message": str(obj)}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)

    # Bounded via islice so generators and other lazy iterables cannot blow up.
    if hasattr(obj, "__iter__") and not isinstance(obj, (str, dict, list)):
        try:
            return list(islice(obj, _MAX_ITERABLE_ITEMS))
        except TypeError:
            pass

    return str(obj)


def to_jsonable(value: object) -> object:
    """Return a deep copy of ``value`` made only of JSON types."""
    return json.loads(json.dumps(value, default=json_default))
