"""Routine references, typed parameter values and batch plans."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def quote_identifier(identifier: str) -> str:
    """Bracket-quote an identifier so it is never read as an expression."""
    return "[" + identifier.replace("]", "]]") + "]"


def _unwrap(segment: str) -> str:
    segment = segment.strip()
    if len(segment) >= 2 and segment.startswith("[") and segment.endswith("]"):
        return segment[1:-1].replace("]]", "]")
    return segment


class RoutineReference(BaseModel):
    """A callable (or describable) object addressed as ``[schema.]name``."""

    model_config = ConfigDict(frozen=True)

    schema_name: str | None = None
    name: str

    @classmethod
    def parse(cls, text: str, default_schema: str | None = None) -> RoutineReference:
        """Split ``schema.name``; only the first two segments are consulted."""
        text = text.strip()
        if "." in text:
            parts = text.split(".")
            return cls(schema_name=_unwrap(parts[0]) or default_schema, name=_unwrap(parts[1]))
        return cls(schema_name=default_schema, name=_unwrap(text))

    @property
    def quoted(self) -> str:
        if self.schema_name:
            return f"{quote_identifier(self.schema_name)}.{quote_identifier(self.name)}"
        return quote_identifier(self.name)

    def __str__(self) -> str:
        return f"{self.schema_name}.{self.name}" if self.schema_name else self.name


class SqlTypeTag(str, Enum):
    """Closed set of value shapes a decoded parameter can take."""

    NULL = "null"
    INT32 = "int32"
    INT64 = "int64"
    DECIMAL = "decimal"
    FLOAT = "float"
    BOOL = "bool"
    TEXT = "text"
    TEMPORAL = "temporal"
    VARIANT = "variant"


class TypedValue(BaseModel):
    """A value together with the native type used to declare a variable for it."""

    model_config = ConfigDict(frozen=True)

    tag: SqlTypeTag
    value: Any = None
    sql_type: str


class ParameterValue(BaseModel):
    """One caller-supplied argument, alive for a single invocation."""

    key: str
    index: int
    raw_value: Any = None
    typed: TypedValue


class Declaration(BaseModel):
    variable: str
    sql_type: str

    def render(self) -> str:
        return f"DECLARE {self.variable} {self.sql_type}"


class Assignment(BaseModel):
    variable: str
    parameter: str

    def render(self) -> str:
        return f"SET {self.variable} = :{self.parameter}"


class OutputBinding(BaseModel):
    """A procedure OUTPUT parameter routed through a local variable."""

    name: str
    variable: str
    sql_type: str
    parameter: str | None = None
    """Bind parameter holding the caller's initial value, if one was given."""


class BatchPlan(BaseModel):
    """Everything the binder decided for one invocation.

    ``declarations`` and ``assignments`` are zipped by position and always
    name the same variable at the same index.
    """

    declarations: list[Declaration] = Field(default_factory=list)
    assignments: list[Assignment] = Field(default_factory=list)
    binds: dict[str, Any] = Field(default_factory=dict)
    arguments: list[str] = Field(default_factory=list)
    outputs: list[OutputBinding] = Field(default_factory=list)
    parameters: list[ParameterValue] = Field(default_factory=list)
    invocation_text: str = ""

    @model_validator(mode="after")
    def _check_pairs(self) -> BatchPlan:
        if len(self.declarations) != len(self.assignments):
            raise ValueError("every declaration needs exactly one assignment")
        for decl, assign in zip(self.declarations, self.assignments):
            if decl.variable != assign.variable:
                raise ValueError(
                    f"declaration {decl.variable} paired with assignment {assign.variable}"
                )
        return self

    @property
    def preamble(self) -> list[str]:
        return [d.render() for d in self.declarations] + [a.render() for a in self.assignments]


class InvocationStyle(str, Enum):
    PROCEDURE = "procedure"
    SCALAR_FUNCTION = "scalar_function"
    TABLE_FUNCTION = "table_function"


class Batch(BaseModel):
    """Final statement text plus the values bound to it."""

    style: InvocationStyle
    plan: BatchPlan
    statements: list[str]

    @property
    def sql(self) -> str:
        return "; ".join(self.statements)

    @property
    def binds(self) -> dict[str, Any]:
        return self.plan.binds
