"""JSON encoding for values that come back from the driver."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any
from uuid import UUID

import simplejson


def json_default(value: Any) -> Any:
    """``default`` hook for values the encoder does not know.

    Decimals never reach this hook: :func:`dumps` writes them with their
    exact digits.
    """
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


def dumps(payload: Any, **kwargs: Any) -> str:
    return simplejson.dumps(payload, use_decimal=True, default=json_default, **kwargs)
