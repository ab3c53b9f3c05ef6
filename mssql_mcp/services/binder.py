"""Turn a decoded parameter map into bind variables and a declare/assign preamble."""

from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

from mssql_mcp.schemas.routine import (
    Assignment,
    BatchPlan,
    Declaration,
    OutputBinding,
    ParameterValue,
)
from mssql_mcp.services.errors import MalformedParameters
from mssql_mcp.services.type_inference import classify

_PARAMETER_NAME = re.compile(r"^@?[A-Za-z_#$][\w#$@]*$")


def bind_name(index: int) -> str:
    """Driver-level bind parameter for slot *index* (``p0``, ``p1`` ...)."""
    return f"p{index}"


def variable_name(index: int) -> str:
    """Intermediate T-SQL variable for slot *index* (``@v0``, ``@v1`` ...)."""
    return f"@v{index}"


def output_variable_name(index: int) -> str:
    return f"@o{index}"


def normalize_parameter_name(key: str) -> str:
    """Return *key* with a leading ``@``.

    Raises:
        MalformedParameters: the key is not a plain T-SQL parameter name.
    """
    key = key.strip()
    if not _PARAMETER_NAME.match(key):
        raise MalformedParameters(f"Invalid parameter name: {key!r}")
    return key if key.startswith("@") else f"@{key}"


def collect_parameters(params: Mapping[str, Any] | None) -> list[ParameterValue]:
    """Index and classify every entry in iteration order."""
    return [
        ParameterValue(key=key, index=i, raw_value=value, typed=classify(value))
        for i, (key, value) in enumerate((params or {}).items())
    ]


def bind_function_parameters(params: Mapping[str, Any] | None) -> BatchPlan:
    """Plan a function call through typed intermediate variables.

    Each value is bound to ``:p{i}``, copied into ``@v{i}`` declared with the
    inferred type, and the call site receives ``@v{i}``.  Keys only fix the
    argument order.
    """
    parameters = collect_parameters(params)
    declarations: list[Declaration] = []
    assignments: list[Assignment] = []
    binds: dict[str, Any] = {}
    arguments: list[str] = []

    for param in parameters:
        var, bind = variable_name(param.index), bind_name(param.index)
        binds[bind] = param.typed.value
        declarations.append(Declaration(variable=var, sql_type=param.typed.sql_type))
        assignments.append(Assignment(variable=var, parameter=bind))
        arguments.append(var)

    return BatchPlan(
        declarations=declarations,
        assignments=assignments,
        binds=binds,
        arguments=arguments,
        parameters=parameters,
    )


def bind_procedure_parameters(
    params: Mapping[str, Any] | None,
    output_parameters: Sequence[tuple[str, str]] = (),
) -> BatchPlan:
    """Plan a procedure call with direct named arguments.

    Args:
        params: Caller values keyed by parameter name (``@`` optional).
        output_parameters: ``(name, sql_type)`` for every OUTPUT parameter the
            procedure declares, in declaration order.

    Input values bind straight to ``@name = :p{i}``.  OUTPUT parameters are
    routed through ``@o{j}`` so their final values can be selected after the
    call; a caller-supplied value becomes the variable's initial value.
    """
    parameters = collect_parameters(params)
    supplied: dict[str, ParameterValue] = {}
    for param in parameters:
        supplied[normalize_parameter_name(param.key).lower()] = param

    binds: dict[str, Any] = {bind_name(p.index): p.typed.value for p in parameters}
    output_keys = set()
    outputs: list[OutputBinding] = []
    for j, (name, sql_type) in enumerate(output_parameters):
        name = normalize_parameter_name(name)
        initial = supplied.get(name.lower())
        output_keys.add(name.lower())
        outputs.append(
            OutputBinding(
                name=name,
                variable=output_variable_name(j),
                sql_type=sql_type,
                parameter=bind_name(initial.index) if initial is not None else None,
            )
        )

    arguments = [
        f"{normalize_parameter_name(p.key)} = :{bind_name(p.index)}"
        for p in parameters
        if normalize_parameter_name(p.key).lower() not in output_keys
    ]
    arguments.extend(f"{out.name} = {out.variable} OUTPUT" for out in outputs)

    return BatchPlan(binds=binds, arguments=arguments, outputs=outputs, parameters=parameters)


def bind_literal_arguments(literals: str | None) -> BatchPlan:
    """Plan a function call whose argument list is caller-written SQL.

    The text is spliced as-is; nothing is bound or typed.
    """
    literals = (literals or "").strip()
    return BatchPlan(arguments=[literals] if literals else [])
