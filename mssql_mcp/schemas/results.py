"""Result shapes produced by routine invocation, one variant per shape."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

Row = dict[str, Any]
RowSet = list[Row]


class ProcedureResult(BaseModel):
    """Row sets, return code and OUTPUT parameters of a stored procedure."""

    kind: Literal["procedure"] = "procedure"
    return_value: int | None = None
    result_sets: list[RowSet] = Field(default_factory=list)
    output_parameters: dict[str, Any] = Field(default_factory=dict)

    def to_data(self) -> dict[str, Any]:
        data: dict[str, Any] = {"return_value": self.return_value}
        if len(self.result_sets) == 1:
            data["result_set"] = self.result_sets[0]
        elif len(self.result_sets) > 1:
            data["result_sets"] = self.result_sets
        # The return code alone does not make an output-parameter map.
        if len(self.output_parameters) > 1:
            data["output_parameters"] = self.output_parameters
        return data


class ScalarResult(BaseModel):
    """Single value returned by a scalar function."""

    kind: Literal["scalar"] = "scalar"
    result: Any = None

    def to_data(self) -> dict[str, Any]:
        return {"result": self.result}


class TableResult(BaseModel):
    """Rows returned by a table-valued function."""

    kind: Literal["table"] = "table"
    rows: RowSet = Field(default_factory=list)

    def to_data(self) -> RowSet:
        return self.rows


RoutineResult = Annotated[
    Union[ProcedureResult, ScalarResult, TableResult],
    Field(discriminator="kind"),
]
