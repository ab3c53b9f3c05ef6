"""Render the executable T-SQL batch for a routine invocation."""

from __future__ import annotations

from mssql_mcp.schemas.routine import (
    Batch,
    BatchPlan,
    InvocationStyle,
    RoutineReference,
    quote_identifier,
)

RETURN_VALUE_VARIABLE = "@return_value"
RETURN_VALUE_COLUMN = "@RETURN_VALUE"


def _argument_list(plan: BatchPlan) -> str:
    return ", ".join(plan.arguments)


def _procedure_statements(routine: RoutineReference, plan: BatchPlan) -> tuple[str, list[str]]:
    statements = ["SET NOCOUNT ON", f"DECLARE {RETURN_VALUE_VARIABLE} INT"]
    for out in plan.outputs:
        statements.append(f"DECLARE {out.variable} {out.sql_type}")
        if out.parameter is not None:
            statements.append(f"SET {out.variable} = :{out.parameter}")

    invocation = f"EXEC {RETURN_VALUE_VARIABLE} = {routine.quoted}"
    if plan.arguments:
        invocation += " " + _argument_list(plan)
    statements.append(invocation)

    trailer = [f"{RETURN_VALUE_VARIABLE} AS {quote_identifier(RETURN_VALUE_COLUMN)}"]
    trailer.extend(f"{out.variable} AS {quote_identifier(out.name)}" for out in plan.outputs)
    statements.append("SELECT " + ", ".join(trailer))
    return invocation, statements


def build_batch(routine: RoutineReference, style: InvocationStyle, plan: BatchPlan) -> Batch:
    """Assemble declarations, assignments and the call into one batch.

    Scalar:    ``<decls>; <sets>; SELECT [s].[f](<args>) AS Result``
    Table:     ``<decls>; <sets>; SELECT * FROM [s].[f](<args>)``
    Procedure: ``SET NOCOUNT ON; DECLARE @return_value INT; <outputs>;
               EXEC @return_value = [s].[p] <named args>;
               SELECT @return_value AS [@RETURN_VALUE], <outputs>``

    The preamble is left out entirely when the plan declares nothing.
    """
    if style is InvocationStyle.PROCEDURE:
        invocation, statements = _procedure_statements(routine, plan)
    else:
        if style is InvocationStyle.SCALAR_FUNCTION:
            invocation = f"SELECT {routine.quoted}({_argument_list(plan)}) AS Result"
        else:
            invocation = f"SELECT * FROM {routine.quoted}({_argument_list(plan)})"
        statements = [*plan.preamble, invocation]

    return Batch(
        style=style,
        plan=plan.model_copy(update={"invocation_text": invocation}),
        statements=statements,
    )
