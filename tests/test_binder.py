"""Tests for parameter binding: variables, binds and argument lists."""

from __future__ import annotations

from decimal import Decimal

import pytest

from mssql_mcp.services.binder import (
    bind_function_parameters,
    bind_literal_arguments,
    bind_procedure_parameters,
    normalize_parameter_name,
)
from mssql_mcp.services.errors import MalformedParameters


def test_function_binding_pairs_declarations_and_assignments():
    plan = bind_function_parameters({"@amount": Decimal("100.00"), "@rate": Decimal("0.08")})

    assert [d.render() for d in plan.declarations] == [
        "DECLARE @v0 DECIMAL(38,10)",
        "DECLARE @v1 DECIMAL(38,10)",
    ]
    assert [a.render() for a in plan.assignments] == ["SET @v0 = :p0", "SET @v1 = :p1"]
    assert plan.binds == {"p0": Decimal("100.00"), "p1": Decimal("0.08")}
    assert plan.arguments == ["@v0", "@v1"]


def test_function_binding_uses_iteration_order_not_names():
    plan = bind_function_parameters({"b": "x", "a": 1})
    assert plan.parameters[0].key == "b"
    assert plan.declarations[0].sql_type == "NVARCHAR(50)"
    assert plan.declarations[1].sql_type == "INT"


def test_function_binding_empty():
    plan = bind_function_parameters({})
    assert plan.declarations == []
    assert plan.arguments == []
    assert plan.binds == {}


def test_null_binds_as_none():
    plan = bind_function_parameters({"x": None})
    assert plan.binds == {"p0": None}
    assert plan.declarations[0].sql_type == "SQL_VARIANT"


def test_procedure_binding_named_arguments():
    plan = bind_procedure_parameters({"OrderId": 7, "@Status": "paid"})

    assert plan.arguments == ["@OrderId = :p0", "@Status = :p1"]
    assert plan.binds == {"p0": 7, "p1": "paid"}
    assert plan.declarations == []
    assert plan.outputs == []


def test_procedure_binding_routes_outputs_through_variables():
    plan = bind_procedure_parameters(
        {"@Status": "paid", "@Total": 5},
        output_parameters=[("@Total", "DECIMAL(18,2)")],
    )

    assert plan.arguments == ["@Status = :p0", "@Total = @o0 OUTPUT"]
    out = plan.outputs[0]
    assert out.name == "@Total"
    assert out.variable == "@o0"
    assert out.sql_type == "DECIMAL(18,2)"
    assert out.parameter == "p1"


def test_procedure_output_matching_is_case_insensitive():
    plan = bind_procedure_parameters({"total": 1}, output_parameters=[("@Total", "INT")])
    assert plan.arguments == ["@Total = @o0 OUTPUT"]
    assert plan.outputs[0].parameter == "p0"


def test_procedure_output_without_caller_value():
    plan = bind_procedure_parameters({}, output_parameters=[("@Total", "INT")])
    assert plan.outputs[0].parameter is None
    assert plan.arguments == ["@Total = @o0 OUTPUT"]


@pytest.mark.parametrize("key", ["a b", "x;DROP TABLE t", "1abc", ""])
def test_invalid_parameter_names_rejected(key):
    with pytest.raises(MalformedParameters):
        normalize_parameter_name(key)


def test_parameter_name_gets_at_prefix():
    assert normalize_parameter_name("Since") == "@Since"
    assert normalize_parameter_name("@Since") == "@Since"


def test_literal_arguments_spliced_verbatim():
    plan = bind_literal_arguments(" 100, 'abc' ")
    assert plan.arguments == ["100, 'abc'"]
    assert plan.binds == {}
    assert plan.declarations == []


def test_literal_arguments_empty():
    assert bind_literal_arguments(None).arguments == []
    assert bind_literal_arguments("").arguments == []
