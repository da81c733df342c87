"""Uniform result value returned by every scaffold operation."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class OperationResult:
    """Outcome of a registry or project operation.

    Attributes:
        success: Whether the operation completed
        message: Human readable summary
        error: Failure reason, set when ``success`` is False
        data: Operation specific payload (paths, counts, records)
    """

    success: bool
    message: str = ""
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str = "", **data: Any) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: str, message: str = "", **data: Any) -> "OperationResult":
        return cls(success=False, message=message or error, error=error, data=data)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        payload: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.error is not None:
            payload["error"] = self.error
        if self.data:
            payload["data"] = self.data
        return payload
