"""
Operation Registry - Single source of truth for operation definitions.

Maps operation names to their metadata and async handlers, and renders the
OpenAI function-calling tool definitions sent to the provider.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from .context import OperationContext

logger = logging.getLogger(__name__)

OperationHandler = Callable[[dict, OperationContext], Awaitable[Any]]


@dataclass
class OperationDefinition:
    """Metadata for an operation - defined once, used everywhere."""

    name: str
    description: str
    parameters: dict[str, dict]  # param_name -> JSON schema fragment
    handler: OperationHandler
    required: list[str] = field(default_factory=list)

    def to_tool(self) -> dict:
        """OpenAI function-calling definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": self.parameters,
                    "required": list(self.required),
                },
            },
        }


def _squash(name: str) -> str:
    return name.lower().replace("_", "")


class OperationRegistry:
    """Central registry for all operations."""

    _operations: dict[str, OperationDefinition] = {}

    @classmethod
    def register(
        cls,
        name: str,
        description: str,
        parameters: dict[str, Any],
        handler: OperationHandler,
        required: Optional[list[str]] = None,
    ) -> None:
        """Register an operation.

        ``parameters`` values may be plain strings (treated as string
        parameters with that description) or JSON schema fragments.
        """
        properties = {
            param: ({"type": "string", "description": schema} if isinstance(schema, str) else schema)
            for param, schema in parameters.items()
        }
        cls._operations[name] = OperationDefinition(
            name=name,
            description=description,
            parameters=properties,
            handler=handler,
            required=list(required or []),
        )
        logger.debug("Registered operation '%s'", name)

    @classmethod
    def get(cls, name: str) -> Optional[OperationDefinition]:
        """Get an operation by name."""
        return cls._operations.get(name)

    @classmethod
    def names(cls) -> list[str]:
        return list(cls._operations)

    @classmethod
    def all_operations(cls) -> dict[str, OperationDefinition]:
        """Get a copy of all registered operations."""
        return cls._operations.copy()

    @classmethod
    def suggest(cls, name: str) -> Optional[str]:
        """Closest registered name, ignoring case and underscores."""
        wanted = _squash(name)
        return next(
            (candidate for candidate in cls._operations if _squash(candidate) == wanted),
            None,
        )

    @classmethod
    def tool_definitions(cls) -> list[dict]:
        return [op.to_tool() for op in cls._operations.values()]

    @classmethod
    def clear(cls) -> None:
        """Clear all registered operations (mainly for testing)."""
        cls._operations.clear()
