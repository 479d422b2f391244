"""
Process-wide Langfuse client for orchestration tracing.

Built on the Langfuse SDK v3 (OpenTelemetry-based). The client is only
enabled once credentials are present and ``auth_check()`` succeeds; in every
other case it stays inert and ``error`` explains why, so a chat message is
never held up by the tracing backend.
"""

import logging
from typing import Optional

from langfuse import Langfuse

from ..models import LangfuseConfig

logger = logging.getLogger(__name__)


class TracingClient:
    """Owns the Langfuse SDK instance; ``enabled`` is False whenever setup failed."""

    def __init__(
        self,
        public_key: str = "",
        secret_key: str = "",
        host: str = "",
        debug: bool = False,
    ):
        self._client: Optional[Langfuse] = None
        self._enabled = False
        self._error: Optional[str] = None

        if not (public_key and secret_key):
            self._disable("Langfuse credentials not configured", level=logging.DEBUG)
            return

        if host and "://" not in host:
            logger.warning(f"Langfuse host '{host}' has no scheme, expected http(s)://host:port")

        options = {"public_key": public_key, "secret_key": secret_key, "debug": debug}
        if host:
            options["host"] = host
        try:
            self._client = Langfuse(**options)
        except Exception as e:
            self._disable(f"Failed to initialize Langfuse client: {e}")
            return

        self._enabled = self._verify()
        if self._enabled:
            logger.info(f"Tracing orchestration runs to Langfuse ({host or 'default host'})")

    @classmethod
    def from_config(cls, settings: LangfuseConfig) -> "TracingClient":
        return cls(
            public_key=settings.public_key,
            secret_key=settings.secret_key,
            host=settings.host,
            debug=settings.debug,
        )

    def _disable(self, reason: str, level: int = logging.WARNING) -> None:
        self._error = reason
        self._client = None
        logger.log(level, f"Tracing disabled: {reason}")

    def _verify(self) -> bool:
        """Check credentials and reachability once, at startup."""
        try:
            authorized = bool(self._client.auth_check())
        except Exception as e:
            self._disable(f"Langfuse connectivity check failed: {e}")
            return False
        if not authorized:
            self._disable("Langfuse auth_check() rejected the credentials")
        return authorized

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def error(self) -> Optional[str]:
        """Reason tracing is off, if it is."""
        return self._error

    @property
    def client(self) -> Optional[Langfuse]:
        return self._client

    def _invoke(self, method: str) -> bool:
        if not self._enabled or self._client is None:
            return False
        try:
            getattr(self._client, method)()
        except Exception as e:
            logger.warning(f"Langfuse {method}() failed: {e}")
            return False
        return True

    def flush(self) -> None:
        """Send buffered spans and generations."""
        self._invoke("flush")

    def shutdown(self) -> None:
        """Flush what is left and stop the exporter."""
        if self._invoke("shutdown"):
            logger.info("Langfuse client shut down")


_tracing_client: Optional[TracingClient] = None


def init_tracing_client(settings: LangfuseConfig) -> TracingClient:
    """Create the process-wide client from the ``langfuse`` config section."""
    global _tracing_client
    _tracing_client = TracingClient.from_config(settings)
    return _tracing_client


def get_tracing_client() -> Optional[TracingClient]:
    return _tracing_client


def shutdown_tracing() -> None:
    global _tracing_client
    client, _tracing_client = _tracing_client, None
    if client is not None:
        client.shutdown()
