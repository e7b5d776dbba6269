"""Sync result structures.

A sync returns a report rather than raising for item-level problems: every
reconciled item is listed with either its data or the error it hit.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SyncItemResult:
    """Outcome of reconciling one remote item."""

    data: dict[str, Any]
    error: bool = False
    message: str | None = None

    @classmethod
    def ok(cls, data: dict[str, Any]) -> "SyncItemResult":
        return cls(data=data)

    @classmethod
    def failed(cls, data: dict[str, Any], message: str) -> "SyncItemResult":
        return cls(data=data, error=True, message=message)

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": True, "message": self.message, "data": self.data}
        return {"error": False, "data": self.data}


@dataclass
class SyncResult:
    """Aggregated outcome of a sync run.

    ``success`` is False iff at least one item-level error was captured.
    """

    entity: str
    items: list[SyncItemResult] = field(default_factory=list)
    summary: dict[str, int] = field(default_factory=dict)

    @property
    def failures(self) -> list[SyncItemResult]:
        return [item for item in self.items if item.error]

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def message(self) -> str:
        if not self.items:
            return f"No {self.entity} to synchronize"
        if self.success:
            return f"{self.entity.capitalize()} synchronized successfully"
        return (
            f"{self.entity.capitalize()} synchronized with "
            f"{len(self.failures)} of {len(self.items)} items failed"
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "data": [item.to_dict() for item in self.items],
        }
        if self.summary:
            payload["summary"] = self.summary
        return payload
