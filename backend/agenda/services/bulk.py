# backend/agenda/services/bulk.py
"""
Result type for best-effort bulk operations.

One item's failure never aborts the batch: it is recorded with its
position and input instead.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass
class BulkFailure:
    index: int
    input: dict[str, Any]
    error: Exception

    def as_dict(self) -> dict:
        return {"index": self.index, "input": self.input, "error": str(self.error)}


@dataclass
class BulkResult(Generic[T]):
    succeeded: list[T] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)

    def add_failure(self, index: int, item: dict[str, Any], error: Exception) -> None:
        self.failed.append(BulkFailure(index=index, input=item, error=error))
