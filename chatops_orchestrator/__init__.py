"""
Chat-ops Orchestrator - tool-calling orchestration for a chat server assistant

This package provides:
- Round-based orchestration loop over an OpenAI-compatible provider
- Call deduplication, retry with backoff and a loop guard
- Live action checklist posted and edited on the chat platform
- Operation registry with built-in search and calculate operations
- HTTP API and interactive CLI backed by an in-memory chat platform
"""

from .handler import MessageProcessor, ProcessingResult
from .orchestration import OrchestrationLoop, OrchestrationResult
from .operations import OperationRegistry

__all__ = [
    "MessageProcessor",
    "ProcessingResult",
    "OrchestrationLoop",
    "OrchestrationResult",
    "OperationRegistry",
]

__version__ = "0.1.0"
