"""
Data models for operation calls and their execution records.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

# Marker key on args of entries seeded by the planner before real
# arguments are known.
PLANNED_MARKER = "__planned"


class ExecutionStatus(Enum):
    """Lifecycle of a single execution log entry."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self is not ExecutionStatus.PENDING


@dataclass(frozen=True)
class OperationCall:
    """An operation proposed by the provider in one response."""

    name: str
    args: dict = field(default_factory=dict)


@dataclass
class ExecutionLogEntry:
    """A single call record in one orchestration run."""

    handle: int
    name: str
    args: Any
    planned_order: int
    status: ExecutionStatus = ExecutionStatus.PENDING
    result: Any = None
    sequence: Optional[int] = None

    @property
    def is_placeholder(self) -> bool:
        """True for planner-seeded entries that have not been claimed yet."""
        return isinstance(self.args, dict) and self.args.get(PLANNED_MARKER) is True

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "args": self.args,
            "status": self.status.value,
            "result": self.result,
            "sequence": self.sequence,
            "planned_order": self.planned_order,
        }
