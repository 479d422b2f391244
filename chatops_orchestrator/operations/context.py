"""
Ambient context for the operation currently executing.

Handlers receive the context explicitly; ``current_operation()`` exposes the
same value to code that sits deeper in the call stack (confirmation flows,
audit logging) without threading it through every signature.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator, Optional


@dataclass(frozen=True)
class OperationContext:
    message: Any
    user_id: str
    channel_id: str
    guild_id: Optional[str] = None


_current: ContextVar[Optional[OperationContext]] = ContextVar(
    "current_operation", default=None
)


def current_operation() -> Optional[OperationContext]:
    return _current.get()


@contextmanager
def operation_scope(context: OperationContext) -> Iterator[OperationContext]:
    """Install ``context`` for the duration of one handler call."""
    token = _current.set(context)
    try:
        yield context
    finally:
        _current.reset(token)
