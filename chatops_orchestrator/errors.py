"""
Exception hierarchy for the chat-ops orchestrator.

Operation-level failures never surface as exceptions: they are converted to
``{"error": ...}`` results and fed back to the provider. Only provider and
configuration problems propagate.
"""

from typing import Optional

# HTTP-style statuses that signal rate limiting or transient unavailability.
RETRIABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


class OrchestratorError(Exception):
    """Base class for orchestrator errors."""


class ConfigurationError(OrchestratorError):
    """Raised when the configuration file is missing data or malformed."""


class ProviderError(OrchestratorError):
    """Raised when a generative provider call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retriable(self) -> bool:
        return self.status_code in RETRIABLE_STATUS_CODES


def status_code_of(error: BaseException) -> Optional[int]:
    """Extract an HTTP-style status from provider SDK exceptions."""
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_retriable(error: BaseException) -> bool:
    """True for rate-limit and transient server-unavailable errors."""
    return status_code_of(error) in RETRIABLE_STATUS_CODES
