# =============================================================================
# core/models/results.py - Uniform Operation Results
# =============================================================================
# Store and facade operations never raise across their public boundary.
# They return one of these instead: success, or an error message plus the
# error kind that tells the HTTP layer which status to use.
# =============================================================================

from __future__ import annotations

from pydantic import BaseModel, Field

from app.exceptions import ErrorKind, LogbookException


class OperationResult(BaseModel):
    """
    Outcome of a store or facade operation.

    Example:
        {"success": false, "error": "Invite code already exists", "error_kind": "conflict"}
    """
    success: bool = Field(..., description="Whether the operation took effect")
    error: str | None = Field(default=None, description="Human-readable failure reason")
    error_kind: ErrorKind | None = Field(default=None, description="Failure category")

    @classmethod
    def ok(cls, **fields) -> "OperationResult":
        return cls(success=True, **fields)

    @classmethod
    def fail(cls, error: str, kind: ErrorKind, **fields) -> "OperationResult":
        return cls(success=False, error=error, error_kind=kind, **fields)

    @classmethod
    def from_exception(cls, exc: LogbookException, **fields) -> "OperationResult":
        """Convert a caught LogbookException into a failed result."""
        return cls(success=False, error=exc.message, error_kind=exc.kind, **fields)
