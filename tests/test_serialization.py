"""Tests for JSON encoding of driver values."""

from __future__ import annotations

import json
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from mssql_mcp.utils import dumps


def test_decimals_stay_numeric():
    assert json.loads(dumps({"a": Decimal("108.00"), "b": Decimal("0.08")})) == {"a": 108, "b": 0.08}


def test_decimals_keep_every_digit():
    value = Decimal("1234567890123.0123456789")
    text = dumps({"result": value})
    assert text == '{"result": 1234567890123.0123456789}'
    assert json.loads(text, parse_float=Decimal)["result"] == value


def test_temporal_values_are_iso_strings():
    payload = json.loads(
        dumps([datetime(2024, 1, 2, 3, 4, 5), date(2024, 1, 2), time(8, 30)])
    )
    assert payload == ["2024-01-02T03:04:05", "2024-01-02", "08:30:00"]


def test_uuid_and_bytes():
    uid = UUID("12345678-1234-5678-1234-567812345678")
    assert json.loads(dumps({"id": uid, "blob": b"\x01\xff"})) == {
        "id": "12345678-1234-5678-1234-567812345678",
        "blob": "01ff",
    }
