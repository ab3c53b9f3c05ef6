"""Shared DbOperationResult envelope."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator


class DbOperationResult(BaseModel):
    """Standard envelope for every tool result.

    Exactly one of ``data`` / ``error`` is meaningful: successful results
    never carry an error, failed results never carry data.
    """

    success: bool
    data: Any | None = None
    error: str | None = None
    rows_affected: int | None = Field(None, description="Rows touched by a write")

    @model_validator(mode="after")
    def _check_branch(self) -> DbOperationResult:
        if self.success and self.error is not None:
            raise ValueError("a successful result cannot carry an error")
        if not self.success:
            if self.error is None:
                raise ValueError("a failed result needs an error message")
            if self.data is not None or self.rows_affected is not None:
                raise ValueError("a failed result cannot carry data")
        return self

    @classmethod
    def ok(cls, data: Any = None, rows_affected: int | None = None) -> DbOperationResult:
        return cls(success=True, data=data, rows_affected=rows_affected)

    @classmethod
    def failure(cls, message: str) -> DbOperationResult:
        return cls(success=False, error=message)

    def to_payload(self) -> dict[str, Any]:
        """Dump for the wire, omitting absent keys."""
        payload: dict[str, Any] = {"success": self.success}
        if self.success:
            if self.data is not None:
                payload["data"] = self.data
            if self.rows_affected is not None:
                payload["rows_affected"] = self.rows_affected
        else:
            payload["error"] = self.error
        return payload
