"""
Tool-calling orchestration engine.

Turns one inbound chat message into provider rounds, deduplicated operation
executions and a live progress checklist.
"""

from .checklist import ChecklistDisplay, ChecklistRenderer, ChecklistReporter
from .dedup import CallDeduplicator, DedupCaches, DedupDecision
from .execution_log import ExecutionLog
from .executor import ExecutionOutcome, FunctionResult, OperationExecutor, RunState
from .fallback import FallbackGenerator
from .loop import OrchestrationLoop, OrchestrationResult
from .planner import Planner
from .retry import RetryPolicy
from .signature import MISSING, canonicalize, sign

__all__ = [
    "ChecklistDisplay",
    "ChecklistRenderer",
    "ChecklistReporter",
    "CallDeduplicator",
    "DedupCaches",
    "DedupDecision",
    "ExecutionLog",
    "ExecutionOutcome",
    "FunctionResult",
    "OperationExecutor",
    "RunState",
    "FallbackGenerator",
    "OrchestrationLoop",
    "OrchestrationResult",
    "Planner",
    "RetryPolicy",
    "MISSING",
    "canonicalize",
    "sign",
]
