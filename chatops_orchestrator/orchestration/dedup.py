"""
Duplicate-call suppression for one orchestration run.

Providers frequently re-propose an operation that already ran. The
deduplicator decides, before execution, whether a call may run or must be
answered from a previous result, and counts every skip toward the loop
guard.
"""

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..models import OperationCall

logger = logging.getLogger(__name__)

DEFAULT_SINGLE_EXECUTION = frozenset(
    {"search", "createEmbed", "sendDiscordMessage", "executeCode"}
)
DEFAULT_REPEAT_GUARD = "screenshotWebsite"

REPEAT_GUARD_MESSAGE = (
    "Screenshot already captured for this request. Ask for another screenshot "
    "explicitly in a new message if you need a fresh capture."
)

# Reason codes attached to skip decisions.
REPEAT_GUARD = "repeat_guard"
SINGLE_EXECUTION = "single_execution"
DUPLICATE_SIGNATURE = "duplicate_signature"


@dataclass
class DedupCaches:
    """Per-run memo of executed calls. Each key is written at most once."""

    by_signature: dict[str, Any] = field(default_factory=dict)
    by_name: dict[str, Any] = field(default_factory=dict)
    attempts: Counter = field(default_factory=Counter)
    loop_guard: int = 0


@dataclass(frozen=True)
class DedupDecision:
    action: str  # "execute" or "skip"
    result: Any = None
    reason: Optional[str] = None

    @property
    def should_execute(self) -> bool:
        return self.action == "execute"


EXECUTE = DedupDecision(action="execute")


def stringify_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(result)


def format_duplicate_message(name: str, previous: Any) -> str:
    """Notice returned to the provider in place of a repeated execution."""
    return (
        f"Duplicate call for {name} skipped. This function already succeeded "
        f"for the current request—stop calling {name} again and finish your "
        f"final response using the previous result: {stringify_result(previous)}"
    )


class CallDeduplicator:
    """Gate in front of the executor.

    Checks run in a fixed order: the repeat guard, then single-execution
    names, then exact signatures.
    """

    def __init__(
        self,
        single_execution: Optional[Iterable[str]] = None,
        repeat_guard: Optional[str] = DEFAULT_REPEAT_GUARD,
    ):
        self.single_execution = frozenset(
            DEFAULT_SINGLE_EXECUTION if single_execution is None else single_execution
        )
        self.repeat_guard = repeat_guard

    def is_single_execution(self, name: str) -> bool:
        return name in self.single_execution

    def check(
        self, call: OperationCall, signature: str, caches: DedupCaches
    ) -> DedupDecision:
        """Decide whether ``call`` runs. Skips bump ``caches.loop_guard``."""
        name = call.name
        caches.attempts[name] += 1

        if self.repeat_guard and name == self.repeat_guard and caches.attempts[name] > 1:
            decision = DedupDecision("skip", REPEAT_GUARD_MESSAGE, REPEAT_GUARD)
        elif self.is_single_execution(name) and name in caches.by_name:
            decision = DedupDecision(
                "skip",
                format_duplicate_message(name, caches.by_name[name]),
                SINGLE_EXECUTION,
            )
        elif signature in caches.by_signature:
            decision = DedupDecision(
                "skip",
                format_duplicate_message(name, caches.by_signature[signature]),
                DUPLICATE_SIGNATURE,
            )
        else:
            return EXECUTE

        caches.loop_guard += 1
        logger.debug(
            "Skipping %s (%s), loop guard at %d", name, decision.reason, caches.loop_guard
        )
        return decision

    def record(
        self,
        call: OperationCall,
        signature: str,
        result: Any,
        caches: DedupCaches,
        succeeded: bool = True,
    ) -> None:
        """Remember the result of an executed call.

        Failed results are cached by signature only, so a single-execution
        operation may still be retried with different arguments.
        """
        caches.by_signature.setdefault(signature, result)
        if succeeded and self.is_single_execution(call.name):
            caches.by_name.setdefault(call.name, result)
