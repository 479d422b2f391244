"""
Operations Package

Built-in operations (registered on import):
- search: Web search via SearXNG
- calculate: Mathematical expression evaluation

Platform operations (channel, role and message management) are registered by
the embedding application through ``OperationRegistry.register``.
"""

from .context import OperationContext, current_operation, operation_scope
from .registry import OperationDefinition, OperationRegistry
from .search import search
from .calculator import calculate

__all__ = [
    "OperationContext",
    "current_operation",
    "operation_scope",
    "OperationDefinition",
    "OperationRegistry",
    "search",
    "calculate",
]
