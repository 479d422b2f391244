"""
Configuration models for the chat-ops orchestrator.

One dataclass per section of config/config.yaml; defaults here apply when a
section or key is missing.
"""

from dataclasses import dataclass, field


@dataclass
class RetryConfig:
    """Bounded exponential backoff for provider calls."""
    max_attempts: int = 5
    base_delay: float = 3.0


@dataclass
class OrchestratorConfig:
    """Configuration for the main generative provider and the round loop."""
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 2048
    max_rounds: int = 5
    loop_guard_threshold: int = 2
    post_call_delay: float = 0.5
    limit_message: str = "template"
    system_instruction: str = ""
    single_execution_operations: list[str] = field(
        default_factory=lambda: [
            "search",
            "createEmbed",
            "sendDiscordMessage",
            "executeCode",
        ]
    )
    repeat_guard_operation: str = "screenshotWebsite"
    retry: RetryConfig = field(default_factory=RetryConfig)


@dataclass
class AuxiliaryConfig:
    """Configuration for the lightweight planner/fallback provider calls."""
    enabled: bool = True
    model: str = "gpt-4o-mini"
    retry: RetryConfig = field(
        default_factory=lambda: RetryConfig(max_attempts=3, base_delay=2.0)
    )


@dataclass
class ChecklistConfig:
    """Configuration for the live progress checklist."""
    mutating_only: bool = True
    display_limit: int = 4096
    settle_delay: float = 0.3


@dataclass
class ConversationConfig:
    """Configuration for conversation context assembly."""
    max_recent_messages: int = 10
    allowed_channel: str = ""
    inline_attachment_limit: int = 4 * 1024 * 1024
    max_attachment_bytes: int = 25 * 1024 * 1024


@dataclass
class SearxngConfig:
    """Configuration for the SearXNG search operation."""
    url: str = "http://localhost:8080/search"
    timeout: int = 30


@dataclass
class ToolsConfig:
    """Configuration for built-in operation endpoints."""
    searxng: SearxngConfig = field(default_factory=SearxngConfig)


@dataclass
class ServerConfig:
    """uvicorn settings for the HTTP API."""
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    reload: bool = False


@dataclass
class LoggingConfig:
    """Log level for the chatops_orchestrator loggers."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Langfuse tracing credentials.

    Tracing switches on only when both keys are set and the auth check passes.
    """
    public_key: str = ""
    secret_key: str = ""
    host: str = "https://cloud.langfuse.com"
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        """True when both keys are set."""
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """
    Root of the configuration tree.

    ``load_app_config`` overlays config/config.yaml onto these defaults.
    """
    version: str = "1.0"
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    planner: AuxiliaryConfig = field(default_factory=AuxiliaryConfig)
    fallback: AuxiliaryConfig = field(default_factory=AuxiliaryConfig)
    checklist: ChecklistConfig = field(default_factory=ChecklistConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)

    @property
    def log_level(self) -> str:
        """Shortcut for ``logging.level``."""
        return self.logging.level
