"""
Data models for the chat-ops orchestrator.
"""

from .config import (
    RetryConfig,
    OrchestratorConfig,
    AuxiliaryConfig,
    ChecklistConfig,
    ConversationConfig,
    SearxngConfig,
    ToolsConfig,
    ServerConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)
from .conversation import (
    ConversationEntry,
    ConversationPart,
    FileReferencePart,
    InlineDataPart,
    TextPart,
)
from .execution import (
    PLANNED_MARKER,
    ExecutionLogEntry,
    ExecutionStatus,
    OperationCall,
)

__all__ = [
    # Config models
    "RetryConfig",
    "OrchestratorConfig",
    "AuxiliaryConfig",
    "ChecklistConfig",
    "ConversationConfig",
    "SearxngConfig",
    "ToolsConfig",
    "ServerConfig",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
    # Conversation models
    "ConversationEntry",
    "ConversationPart",
    "FileReferencePart",
    "InlineDataPart",
    "TextPart",
    # Execution models
    "PLANNED_MARKER",
    "ExecutionLogEntry",
    "ExecutionStatus",
    "OperationCall",
]
