"""Fold the row sets produced by a batch into one structured result."""

from __future__ import annotations

from typing import Any, Sequence

from mssql_mcp.schemas.results import ProcedureResult, RowSet, ScalarResult, TableResult
from mssql_mcp.schemas.routine import OutputBinding
from mssql_mcp.services.batch_builder import RETURN_VALUE_COLUMN


def materialize(columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> RowSet:
    """Rows as column-name maps; driver values (and NULL as None) kept as-is."""
    return [dict(zip(columns, row)) for row in rows]


async def read_row_sets(cursor) -> list[RowSet]:
    """Read every row set the cursor produces, in order.

    Results without a description (row counts, messages) are skipped;
    described but empty row sets are kept so callers can decide.
    """
    row_sets: list[RowSet] = []
    while True:
        if cursor.description is not None:
            columns = [col[0] for col in cursor.description]
            row_sets.append(materialize(columns, await cursor.fetchall()))
        if not await cursor.nextset():
            break
    return row_sets


def aggregate_procedure(
    row_sets: Sequence[RowSet], outputs: Sequence[OutputBinding] = ()
) -> ProcedureResult:
    """Build a ProcedureResult.

    The batch always ends with a one-row SELECT of the return code and the
    OUTPUT variables, so the last row set is that trailer.  Everything before
    it is procedure output; empty row sets are dropped.
    """
    trailer: dict[str, Any] = {}
    if row_sets and row_sets[-1]:
        trailer = row_sets[-1][0]
    produced = [rows for rows in row_sets[:-1] if rows]

    return_value = trailer.get(RETURN_VALUE_COLUMN)
    output_parameters: dict[str, Any] = {RETURN_VALUE_COLUMN: return_value}
    for out in outputs:
        output_parameters[out.name] = trailer.get(out.name)

    return ProcedureResult(
        return_value=return_value,
        result_sets=produced,
        output_parameters=output_parameters,
    )


def aggregate_scalar(row_sets: Sequence[RowSet]) -> ScalarResult:
    for rows in row_sets:
        if rows:
            return ScalarResult(result=next(iter(rows[0].values()), None))
    return ScalarResult(result=None)


def aggregate_table(row_sets: Sequence[RowSet]) -> TableResult:
    return TableResult(rows=list(row_sets[0]) if row_sets else [])
