"""Tests for parameter decoding and SQL type classification."""

from __future__ import annotations

import json
from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

from mssql_mcp.schemas.routine import SqlTypeTag
from mssql_mcp.services.errors import MalformedParameters
from mssql_mcp.services.type_inference import (
    DECIMAL_TYPE,
    catalog_type,
    classify,
    decode_parameters,
    fits_decimal,
    nvarchar_type,
)

# ---------------------------------------------------------------------------
# decode_parameters
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("text", [None, "", "   ", "null"])
def test_decode_empty_means_no_parameters(text):
    assert decode_parameters(text) == {}


def test_decode_keeps_key_order():
    decoded = decode_parameters('{"z": 1, "a": 2, "m": 3}')
    assert list(decoded) == ["z", "a", "m"]


def test_decode_fractions_as_decimal():
    decoded = decode_parameters('{"amount": 100.00, "rate": 0.08}')
    assert decoded["amount"] == Decimal("100.00")
    assert isinstance(decoded["rate"], Decimal)
    assert str(decoded["rate"]) == "0.08"


def test_decode_malformed_json():
    with pytest.raises(MalformedParameters) as exc_info:
        decode_parameters('{"a": ')
    assert exc_info.value.message.startswith("Invalid parameter JSON")


def test_decode_rejects_non_object():
    with pytest.raises(MalformedParameters) as exc_info:
        decode_parameters("[1, 2]")
    assert "expected an object" in exc_info.value.message


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------


def test_classify_null():
    typed = classify(None)
    assert typed.tag is SqlTypeTag.NULL
    assert typed.value is None
    assert typed.sql_type == "SQL_VARIANT"


def test_classify_bool_before_int():
    typed = classify(True)
    assert typed.tag is SqlTypeTag.BOOL
    assert typed.sql_type == "BIT"


@pytest.mark.parametrize(
    "value, tag, sql_type",
    [
        (0, SqlTypeTag.INT32, "INT"),
        (2**31 - 1, SqlTypeTag.INT32, "INT"),
        (-(2**31), SqlTypeTag.INT32, "INT"),
        (2**31, SqlTypeTag.INT64, "BIGINT"),
        (-(2**63), SqlTypeTag.INT64, "BIGINT"),
        (2**63, SqlTypeTag.DECIMAL, DECIMAL_TYPE),
        (10**30, SqlTypeTag.FLOAT, "FLOAT"),
    ],
)
def test_classify_integers_by_range(value, tag, sql_type):
    typed = classify(value)
    assert typed.tag is tag
    assert typed.sql_type == sql_type


def test_classify_decimal_keeps_exact_value():
    typed = classify(Decimal("100.00"))
    assert typed.tag is SqlTypeTag.DECIMAL
    assert typed.sql_type == "DECIMAL(38,10)"
    assert typed.value == Decimal("100.00")


def test_classify_too_many_fraction_digits_falls_back_to_float():
    typed = classify(Decimal("0.123456789012"))
    assert typed.tag is SqlTypeTag.FLOAT
    assert typed.value == pytest.approx(0.123456789012)


def test_classify_native_float():
    assert classify(1.5).sql_type == "FLOAT"


def test_classify_string_is_text_even_when_date_like():
    typed = classify("2024-01-01")
    assert typed.tag is SqlTypeTag.TEXT
    assert typed.sql_type == "NVARCHAR(50)"
    assert typed.value == "2024-01-01"


def test_classify_temporal_values():
    assert classify(datetime(2024, 1, 1, 12, 0)).sql_type == "DATETIME2"
    assert classify(datetime(2024, 1, 1, tzinfo=timezone.utc)).sql_type == "DATETIMEOFFSET"
    assert classify(date(2024, 1, 1)).sql_type == "DATE"
    assert classify(time(8, 30)).sql_type == "TIME"
    assert classify(date(2024, 1, 1)).tag is SqlTypeTag.TEMPORAL


def test_classify_structures_bound_as_json_text():
    typed = classify({"a": [1, 2]})
    assert typed.tag is SqlTypeTag.VARIANT
    assert typed.sql_type == "SQL_VARIANT"
    assert json.loads(typed.value) == {"a": [1, 2]}


# ---------------------------------------------------------------------------
# Sizing helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "length, expected",
    [(0, "NVARCHAR(50)"), (25, "NVARCHAR(50)"), (26, "NVARCHAR(52)"),
     (2000, "NVARCHAR(4000)"), (2001, "NVARCHAR(MAX)")],
)
def test_nvarchar_sizing(length, expected):
    assert nvarchar_type("x" * length) == expected


def test_fits_decimal_boundaries():
    assert fits_decimal(Decimal("9" * 28))
    assert not fits_decimal(Decimal("1" + "0" * 28))
    assert fits_decimal(Decimal("0.0000000001"))
    assert not fits_decimal(Decimal("0.00000000001"))
    assert not fits_decimal(Decimal("NaN"))


@pytest.mark.parametrize(
    "args, expected",
    [
        (("int", 4, 10, 0), "INT"),
        (("nvarchar", 100, 0, 0), "NVARCHAR(50)"),
        (("nvarchar", -1, 0, 0), "NVARCHAR(MAX)"),
        (("varchar", 30, 0, 0), "VARCHAR(30)"),
        (("decimal", 9, 18, 2), "DECIMAL(18,2)"),
        (("datetime2", 8, 27, 7), "DATETIME2(7)"),
    ],
)
def test_catalog_type(args, expected):
    assert catalog_type(*args) == expected
