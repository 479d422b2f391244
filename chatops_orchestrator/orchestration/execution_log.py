"""
Per-run execution log.

Entries live in an arena keyed by a stable integer handle assigned at
creation. ``planned_order`` is fixed at insertion; ``sequence`` is assigned
the first time an entry leaves ``pending`` and increases monotonically
across the run.
"""

import logging
from collections import Counter
from typing import Any, Callable, Iterator, Optional

from ..models import PLANNED_MARKER, ExecutionLogEntry, ExecutionStatus
from .signature import sign

logger = logging.getLogger(__name__)

PENDING_NOTE = "Not required after processing"


class ExecutionLog:
    """Ordered, mutable record of the calls made (or skipped) in one run."""

    def __init__(self) -> None:
        self._entries: dict[int, ExecutionLogEntry] = {}
        self._by_name: dict[str, list[int]] = {}
        self._next_sequence = 1

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ExecutionLogEntry]:
        return iter(self._entries.values())

    def __getitem__(self, handle: int) -> ExecutionLogEntry:
        return self._entries[handle]

    def append(
        self,
        name: str,
        args: Any,
        status: ExecutionStatus = ExecutionStatus.PENDING,
        result: Any = None,
    ) -> int:
        """Insert a new entry and return its handle.

        Entries created already terminal (a skip or error with no pending
        record to claim) receive their sequence immediately.
        """
        handle = len(self._entries)
        entry = ExecutionLogEntry(
            handle=handle,
            name=name,
            args=args,
            planned_order=handle,
            status=status,
            result=result,
        )
        if status.is_terminal:
            entry.sequence = self._take_sequence()
        self._entries[handle] = entry
        self._by_name.setdefault(name, []).append(handle)
        return handle

    def add_placeholder(self, name: str) -> int:
        """Seed a pending entry before real arguments are known."""
        return self.append(name, {PLANNED_MARKER: True})

    def find_pending(
        self, name: str, predicate: Callable[[ExecutionLogEntry], bool]
    ) -> Optional[int]:
        """Return the first pending entry with this name matching predicate."""
        for handle in self._by_name.get(name, ()):
            entry = self._entries[handle]
            if entry.status is ExecutionStatus.PENDING and predicate(entry):
                return handle
        return None

    def find_pending_by_signature(self, name: str, signature: str) -> Optional[int]:
        return self.find_pending(
            name, lambda entry: sign(entry.name, entry.args) == signature
        )

    def find_placeholder(self, name: str) -> Optional[int]:
        return self.find_pending(name, lambda entry: entry.is_placeholder)

    def claim_placeholder(self, name: str, args: Any) -> Optional[int]:
        """Overwrite the args of the first pending placeholder for this name.

        The entry keeps its planned order. Returns None when there is no
        placeholder to claim.
        """
        handle = self.find_placeholder(name)
        if handle is not None:
            self._entries[handle].args = args
        return handle

    def has_signature(self, name: str, signature: str) -> bool:
        """True if any entry, whatever its status, carries this signature."""
        return any(
            sign(name, self._entries[handle].args) == signature
            for handle in self._by_name.get(name, ())
        )

    def has_name(self, name: str) -> bool:
        return bool(self._by_name.get(name))

    def finalize(self, handle: int, status: ExecutionStatus, result: Any) -> bool:
        """Move an entry out of pending.

        Idempotent: a terminal entry is left untouched and False is returned.
        """
        entry = self._entries[handle]
        if entry.status.is_terminal:
            return False
        entry.status = status
        entry.result = result
        if status.is_terminal and entry.sequence is None:
            entry.sequence = self._take_sequence()
        return True

    def finalize_pending(self, note: str = PENDING_NOTE) -> bool:
        """Force every still-pending entry to skipped. Returns True if any changed."""
        changed = False
        for entry in self._entries.values():
            if entry.status is ExecutionStatus.PENDING:
                self.finalize(entry.handle, ExecutionStatus.SKIPPED, note)
                changed = True
        return changed

    def ordered(self) -> list[ExecutionLogEntry]:
        """Entries in display order: by sequence, then by planned order."""
        return sorted(
            self._entries.values(),
            key=lambda e: (
                e.sequence is None,
                e.sequence if e.sequence is not None else 0,
                e.planned_order,
            ),
        )

    def counts(self) -> Counter:
        return Counter(entry.status for entry in self._entries.values())

    def to_list(self) -> list[dict]:
        return [entry.to_dict() for entry in self.ordered()]

    def _take_sequence(self) -> int:
        sequence = self._next_sequence
        self._next_sequence += 1
        return sequence
