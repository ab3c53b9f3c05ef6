"""Pydantic schemas."""

from mssql_mcp.schemas.common import DbOperationResult
from mssql_mcp.schemas.results import ProcedureResult, RoutineResult, ScalarResult, TableResult
from mssql_mcp.schemas.routine import (
    Batch,
    BatchPlan,
    InvocationStyle,
    RoutineReference,
    SqlTypeTag,
    TypedValue,
)

__all__ = [
    "DbOperationResult",
    "ProcedureResult",
    "RoutineResult",
    "ScalarResult",
    "TableResult",
    "Batch",
    "BatchPlan",
    "InvocationStyle",
    "RoutineReference",
    "SqlTypeTag",
    "TypedValue",
]
