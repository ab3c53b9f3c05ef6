"""Decode caller parameter text and map values to SQL Server types (no DB access)."""

from __future__ import annotations

import json
from datetime import date, datetime, time
from decimal import Decimal, localcontext
from typing import Any

from mssql_mcp.schemas.routine import SqlTypeTag, TypedValue
from mssql_mcp.services.errors import MalformedParameters

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1

DECIMAL_PRECISION = 38
DECIMAL_SCALE = 10
DECIMAL_TYPE = f"DECIMAL({DECIMAL_PRECISION},{DECIMAL_SCALE})"

NVARCHAR_MIN_LENGTH = 50
NVARCHAR_MAX_LENGTH = 4000

_SCALE_QUANTUM = Decimal(1).scaleb(-DECIMAL_SCALE)

# Published as an MCP resource so clients can see how arguments get typed.
TYPE_MAPPING: dict[str, str] = {
    "null": "SQL_VARIANT",
    "boolean": "BIT",
    "integer (32-bit range)": "INT",
    "integer (64-bit range)": "BIGINT",
    "integer (wider) / decimal number": DECIMAL_TYPE,
    "number not representable as decimal(38,10)": "FLOAT",
    "string": f"NVARCHAR(max(2 * length, {NVARCHAR_MIN_LENGTH})), NVARCHAR(MAX) above {NVARCHAR_MAX_LENGTH}",
    "array / object": "SQL_VARIANT (bound as JSON text)",
}


def decode_parameters(text: str | None) -> dict[str, Any]:
    """Decode a JSON object of parameters, keeping key order.

    Integers decode to ``int`` and fractional numbers to ``Decimal`` so that
    no precision is lost before classification.  Empty text or ``null``
    means "no parameters".

    Raises:
        MalformedParameters: text is not a well-formed JSON object.
    """
    if text is None or not text.strip():
        return {}
    try:
        decoded = json.loads(text, parse_float=Decimal)
    except ValueError as exc:
        raise MalformedParameters(f"Invalid parameter JSON: {exc}") from exc
    if decoded is None:
        return {}
    if not isinstance(decoded, dict):
        raise MalformedParameters(
            f"Invalid parameter JSON: expected an object, got {type(decoded).__name__}"
        )
    return decoded


def fits_decimal(value: Decimal) -> bool:
    """True when *value* survives a DECIMAL(38,10) column unchanged."""
    if not value.is_finite():
        return False
    if value.adjusted() >= DECIMAL_PRECISION - DECIMAL_SCALE:
        return False
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION + 2
        return value.quantize(_SCALE_QUANTUM) == value


def _classify_number(value: int | Decimal) -> TypedValue:
    if isinstance(value, int):
        if INT32_MIN <= value <= INT32_MAX:
            return TypedValue(tag=SqlTypeTag.INT32, value=value, sql_type="INT")
        if INT64_MIN <= value <= INT64_MAX:
            return TypedValue(tag=SqlTypeTag.INT64, value=value, sql_type="BIGINT")
        value = Decimal(value)
    if fits_decimal(value):
        return TypedValue(tag=SqlTypeTag.DECIMAL, value=value, sql_type=DECIMAL_TYPE)
    return TypedValue(tag=SqlTypeTag.FLOAT, value=float(value), sql_type="FLOAT")


def nvarchar_type(text: str) -> str:
    length = max(len(text) * 2, NVARCHAR_MIN_LENGTH)
    if length > NVARCHAR_MAX_LENGTH:
        return "NVARCHAR(MAX)"
    return f"NVARCHAR({length})"


def catalog_type(type_name: str, max_length: int | None, precision: int | None, scale: int | None) -> str:
    """Render a ``sys.parameters`` / ``sys.columns`` type as a declarable type."""
    name = type_name.lower()
    if name in ("varchar", "char", "varbinary", "binary"):
        return f"{name.upper()}({'MAX' if max_length == -1 else max_length})"
    if name in ("nvarchar", "nchar"):
        # max_length is in bytes
        return f"{name.upper()}({'MAX' if max_length == -1 else (max_length or 2) // 2})"
    if name in ("decimal", "numeric"):
        return f"{name.upper()}({precision},{scale})"
    if name in ("datetime2", "datetimeoffset", "time"):
        return f"{name.upper()}({scale})"
    return name.upper()


def classify(value: Any) -> TypedValue:
    """Map a decoded value to the native type used to declare a variable for it.

    Never fails: shapes without a natural SQL type fall back to SQL_VARIANT.
    Strings stay text even when they look like dates.
    """
    if value is None:
        return TypedValue(tag=SqlTypeTag.NULL, value=None, sql_type="SQL_VARIANT")
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return TypedValue(tag=SqlTypeTag.BOOL, value=value, sql_type="BIT")
    if isinstance(value, (int, Decimal)):
        return _classify_number(value)
    if isinstance(value, float):
        return TypedValue(tag=SqlTypeTag.FLOAT, value=value, sql_type="FLOAT")
    if isinstance(value, str):
        return TypedValue(tag=SqlTypeTag.TEXT, value=value, sql_type=nvarchar_type(value))
    if isinstance(value, datetime):
        sql_type = "DATETIMEOFFSET" if value.tzinfo is not None else "DATETIME2"
        return TypedValue(tag=SqlTypeTag.TEMPORAL, value=value, sql_type=sql_type)
    if isinstance(value, date):
        return TypedValue(tag=SqlTypeTag.TEMPORAL, value=value, sql_type="DATE")
    if isinstance(value, time):
        return TypedValue(tag=SqlTypeTag.TEMPORAL, value=value, sql_type="TIME")
    if isinstance(value, (list, dict)):
        return TypedValue(
            tag=SqlTypeTag.VARIANT, value=json.dumps(value, default=str), sql_type="SQL_VARIANT"
        )
    return TypedValue(tag=SqlTypeTag.VARIANT, value=str(value), sql_type="SQL_VARIANT")
